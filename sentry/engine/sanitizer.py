"""
Sanitizer - Dependency virtualization for user-submitted Solidity.

Rewrites every import statement so that the build sandbox only ever sees:
- whitelisted OpenZeppelin paths remapped onto the bundled mock library
- block comments in place of anything else

Statements keep their line count so that compiler diagnostics still point at
the user's original line numbers.
"""

import re
from dataclasses import dataclass

from sentry.core.exceptions import SanitizationError
from sentry.core.logger.logger import get_logger
from sentry.models.audit import ImportMapping, SanitizationResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImportRule:
    """Maps import paths matching ``pattern`` onto ``mock_path``."""

    pattern: re.Pattern[str]
    mock_path: str

    def matches(self, path: str) -> bool:
        return self.pattern.search(path) is not None


def _rule(pattern: str, mock_path: str) -> ImportRule:
    return ImportRule(re.compile(pattern), mock_path)


# Evaluated in order, first match wins.
IMPORT_RULES: tuple[ImportRule, ...] = (
    # Access control
    _rule(r"@openzeppelin/contracts/access/Ownable\.sol", "mocks/Ownable.sol"),
    _rule(
        r"@openzeppelin/contracts-upgradeable/access/OwnableUpgradeable\.sol",
        "mocks/Ownable.sol",
    ),
    # ERC20
    _rule(r"@openzeppelin/contracts/token/ERC20/IERC20\.sol", "mocks/IERC20.sol"),
    _rule(r"@openzeppelin/contracts/token/ERC20/ERC20\.sol", "mocks/ERC20.sol"),
    _rule(
        r"@openzeppelin/contracts/token/ERC20/extensions/IERC20Metadata\.sol",
        "mocks/IERC20.sol",
    ),
    _rule(
        r"@openzeppelin/contracts-upgradeable/token/ERC20/IERC20Upgradeable\.sol",
        "mocks/IERC20.sol",
    ),
    # SafeERC20 is reduced to the plain interface
    _rule(r"@openzeppelin/contracts/token/ERC20/utils/SafeERC20\.sol", "mocks/IERC20.sol"),
)

MOCK_PATHS: frozenset[str] = frozenset(rule.mock_path for rule in IMPORT_RULES)

UNTRUSTED_PREFIXES: tuple[str, ...] = ("@openzeppelin/", "@chainlink/", "@uniswap/", "hardhat/")
_UNTRUSTED_PATTERN = re.compile(
    "|".join(re.escape(prefix) for prefix in UNTRUSTED_PREFIXES),
    re.IGNORECASE,
)

REMOVED_MARKER = "IMPORT REMOVED BY SENTRY SANITIZER"

# An import statement starts a line or follows a ';'. Its body is plain
# characters, quoted strings or a {symbol list} that may span lines.
_STATEMENT = re.compile(
    r"""(?:^|(?<=;))(?P<indent>[ \t]*)"""
    r"""(?P<statement>import\b(?:[^;"'{}\n]|\{[^};]*\}|"[^"\n]*"|'[^'\n]*')*;?)""",
    re.MULTILINE,
)

# import "path";  /  import "path" as Alias;
_DIRECT_FORM = re.compile(
    r"""import\s*(?P<q>["'])(?P<path>[^"'\n]*)(?P=q)(?:\s+as\s+\w+)?\s*;?\s*"""
)
# import {A, B as C} from "path";  /  import * as Alias from "path";
_FROM_FORM = re.compile(
    r"""import\s*(?:\{[^};]*\}|\*\s*as\s+\w+)\s*from\s*(?P<q>["'])(?P<path>[^"'\n]*)(?P=q)\s*;?\s*"""
)

_PRAGMA = re.compile(r"pragma\s+solidity\s+([^;]+);")
_CONTRACT_DECL = re.compile(r"^\s*(abstract\s+)?contract\s+([A-Za-z_]\w*)", re.MULTILINE)
_ASSEMBLY = re.compile(r"assembly\s*(?:\"[^\"]*\"\s*)?\{")


def resolve_mock_path(path: str, rules: tuple[ImportRule, ...] = IMPORT_RULES) -> str | None:
    """Return the mock path for ``path`` or None when no rule matches."""
    for rule in rules:
        if rule.matches(path):
            return rule.mock_path
    return None


def _file_name(path: str) -> str:
    return re.split(r"[/\\]", path.rstrip("/\\"))[-1]


def _comment_out(match: re.Match[str], label: str) -> str:
    # Keep the statement's line count. Use a line comment unless code follows
    # on the same line.
    line_end = match.string.find("\n", match.end())
    rest = match.string[match.end():line_end if line_end != -1 else None]
    comment = f"/* {label} */" if rest.strip() else f"// {label}"
    return match.group("indent") + comment + "\n" * match.group("statement").count("\n")


def sanitize(raw_source: str, rules: tuple[ImportRule, ...] = IMPORT_RULES) -> SanitizationResult:
    """
    Remap whitelisted imports to the mock library and comment out the rest.

    Args:
        raw_source: Solidity source as submitted by the user.
        rules: Ordered remapping rules.

    Returns:
        SanitizationResult with the rewritten code and import bookkeeping.

    Raises:
        SanitizationError: If an untrusted dependency prefix survives.
    """
    remapped: list[ImportMapping] = []
    removed: list[str] = []

    def replace(match: re.Match[str]) -> str:
        indent = match.group("indent")
        statement = match.group("statement")

        form = _DIRECT_FORM.fullmatch(statement) or _FROM_FORM.fullmatch(statement)
        path = form.group("path").strip() if form else ""

        if not form or not path:
            line_end = match.string.find("\n", match.end())
            raw = match.string[match.start("statement"):line_end if line_end != -1 else None]
            removed.append(raw.strip())
            return _comment_out(match, f"MALFORMED {REMOVED_MARKER}")

        mock_path = path if path in MOCK_PATHS else resolve_mock_path(path, rules)
        if mock_path is None:
            removed.append(path)
            return _comment_out(match, f'{REMOVED_MARKER}: "{_file_name(path)}"')

        remapped.append(ImportMapping(original=path, mocked=mock_path))
        start, end = form.span("path")
        return f"{indent}{statement[:start]}{mock_path}{statement[end:]}"

    code = _STATEMENT.sub(replace, raw_source)
    validate_sanitized_code(code)

    if remapped or removed:
        logger.debug(f"Sanitized imports: {len(remapped)} remapped, {len(removed)} removed")

    return SanitizationResult(
        code=code,
        remapped_imports=remapped,
        removed_imports=removed,
        success=True,
    )


def validate_sanitized_code(code: str) -> None:
    """
    Secondary safety check on sanitizer output.

    Raises:
        SanitizationError: If a known-untrusted dependency prefix is present.
    """
    match = _UNTRUSTED_PATTERN.search(code)
    if match:
        line_no = code.count("\n", 0, match.start()) + 1
        raise SanitizationError(
            f"Untrusted dependency reference survived sanitization at line {line_no}",
            offending_match=match.group(0),
            details={"line": line_no},
        )

    if _ASSEMBLY.search(code):
        logger.warning("Inline assembly detected in submitted contract")


def extract_pragma_version(code: str) -> str | None:
    """Return the ``pragma solidity`` constraint, if any."""
    match = _PRAGMA.search(code)
    return match.group(1).strip() if match else None


def extract_contract_name(code: str) -> str | None:
    """Return the last concrete (non-abstract) contract declared in ``code``."""
    names = [m.group(2) for m in _CONTRACT_DECL.finditer(code) if not m.group(1)]
    return names[-1] if names else None


def format_sanitization_report(result: SanitizationResult) -> str:
    """Human-readable summary for the audit transcript."""
    lines = [
        "  SANITIZER REPORT",
        f"  Status: {'SUCCESS' if result.success else 'FAILED'}",
        f"  Remapped Imports: {len(result.remapped_imports)}",
        f"  Removed Imports: {len(result.removed_imports)}",
    ]

    if result.remapped_imports:
        lines.append("  REMAPPED:")
        for mapping in result.remapped_imports:
            lines.append(f"    {mapping.original}")
            lines.append(f"    └─> {mapping.mocked}")

    if result.removed_imports:
        lines.append("  REMOVED (Non-Whitelisted):")
        for entry in result.removed_imports:
            lines.append(f"    ✗ {entry}")

    return "\n".join(lines)
