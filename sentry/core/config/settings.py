"""Application settings using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sentry.core.config.loader import ConfigLoader

RESOURCES_DIR = Path(__file__).resolve().parent.parent.parent / "resources"


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="SENTRY_LOGGING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = Field(
        default="INFO",
        description="Log level",
    )
    format: str = Field(
        default="[%(name)s] %(message)s",
        description="Log format string",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path",
    )
    use_rich: bool = Field(
        default=True,
        description="Use Rich console for output",
    )

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("file", mode="before")
    @classmethod
    def validate_file(cls, v: str | None) -> Path | None:
        """Validate and convert file to Path."""
        if v is None or v == "":
            return None
        return Path(v)


class SandboxSettings(BaseSettings):
    """Build sandbox (Foundry project) layout."""

    model_config = SettingsConfigDict(
        env_prefix="SENTRY_SANDBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    root: Path = Field(
        default=Path("workspace"),
        description="Sandbox root directory (Foundry project root)",
    )
    contract_file_name: str = Field(
        default="Vault.sol",
        description="File name the audited contract is written to under src/",
    )
    test_file_name: str = Field(
        default="Attacker.t.sol",
        description="File name of the rendered exploit harness under test/",
    )
    mocks_dir: Path = Field(
        default=RESOURCES_DIR / "mocks",
        description="Directory of mock contracts copied into src/mocks",
    )
    harness_template: Path = Field(
        default=RESOURCES_DIR / "templates" / "AttackerHarness.sol",
        description="Exploit harness template",
    )

    @property
    def src_dir(self) -> Path:
        return self.root / "src"

    @property
    def test_dir(self) -> Path:
        return self.root / "test"

    @property
    def lib_dir(self) -> Path:
        return self.root / "lib"

    @property
    def contract_path(self) -> Path:
        return self.src_dir / self.contract_file_name

    @property
    def test_path(self) -> Path:
        return self.test_dir / self.test_file_name


class ToolchainSettings(BaseSettings):
    """Foundry toolchain invocation settings."""

    model_config = SettingsConfigDict(
        env_prefix="SENTRY_TOOLCHAIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    binary: str = Field(
        default="forge",
        description="Toolchain binary name or path",
    )
    build_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        description="Build timeout in milliseconds",
    )
    test_timeout_ms: int = Field(
        default=60000,
        ge=1000,
        description="Exploit test timeout in milliseconds",
    )
    probe_timeout_ms: int = Field(
        default=10000,
        ge=100,
        description="Version probe timeout in milliseconds",
    )
    compat_shell: str = Field(
        default="wsl",
        description="Compatibility shell used where the binary is usually absent",
    )
    wsl_fallback_path: str = Field(
        default="~/.foundry/bin/forge",
        description="Well-known install path inside the compatibility shell",
    )
    force_compat_shell: bool = Field(
        default=False,
        description="Try compatibility-shell candidates on every platform",
    )


class ServerSettings(BaseSettings):
    """HTTP API server settings."""

    model_config = SettingsConfigDict(
        env_prefix="SENTRY_SERVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3005, ge=1, le=65535, description="Bind port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins",
    )


class ProviderSettings(BaseSettings):
    """AI provider settings.

    Read from unprefixed environment variables (``AI_PROVIDER``,
    ``OPENROUTER_API_KEY``, ``OPENAI_MODEL``...). Model variables accept a
    comma-separated list; the first entry is primary, the rest are fallbacks.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ai_provider: str | None = Field(default=None, description="openrouter, openai or gemini")
    openrouter_api_key: str | None = None
    openrouter_model: str = "moonshotai/kimi-k2"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    openai_base_url: str = "https://api.openai.com/v1"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    analysis_timeout_ms: int = Field(default=30000, ge=1000)
    max_tokens: int = Field(default=1024, ge=1)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SENTRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)
    toolchain: ToolchainSettings = Field(default_factory=ToolchainSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            Settings instance with values from YAML.
        """
        loader = ConfigLoader(path)
        loader.load()

        return cls(
            logging=LoggingSettings(**loader.get_section("logging")),
            sandbox=SandboxSettings(**loader.get_section("sandbox")),
            toolchain=ToolchainSettings(**loader.get_section("toolchain")),
            server=ServerSettings(**loader.get_section("server")),
        )

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from default locations.

        Priority: SENTRY_CONFIG YAML file > environment variables > .env > defaults

        Returns:
            Settings instance.
        """
        import os

        config_path = os.getenv("SENTRY_CONFIG")
        if config_path:
            return cls.from_yaml(Path(config_path))
        return cls()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings singleton.
    """
    return Settings.load()
