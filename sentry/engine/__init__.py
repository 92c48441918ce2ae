"""
Verification engine: sanitizer, Foundry toolchain, compiler and exploit verifier.
"""

from sentry.engine.compiler import CompilerAdapter
from sentry.engine.sanitizer import (
    IMPORT_RULES,
    ImportRule,
    extract_contract_name,
    extract_pragma_version,
    format_sanitization_report,
    sanitize,
    validate_sanitized_code,
)
from sentry.engine.toolchain import (
    ProcessResult,
    ToolchainResolver,
    reset_resolution_cache,
    run_process,
)
from sentry.engine.verifier import (
    EXPLOIT_MARKER,
    INJECTION_MARKER,
    ExploitVerifier,
    classify_output,
    format_verification_report,
)

__all__ = [
    "CompilerAdapter",
    "EXPLOIT_MARKER",
    "ExploitVerifier",
    "IMPORT_RULES",
    "INJECTION_MARKER",
    "ImportRule",
    "ProcessResult",
    "ToolchainResolver",
    "classify_output",
    "extract_contract_name",
    "extract_pragma_version",
    "format_sanitization_report",
    "format_verification_report",
    "reset_resolution_cache",
    "run_process",
    "sanitize",
    "validate_sanitized_code",
]
