"""Tests for the import sanitizer."""

import re

import pytest

from sentry.core.exceptions import SanitizationError
from sentry.engine.sanitizer import (
    IMPORT_RULES,
    ImportRule,
    MOCK_PATHS,
    UNTRUSTED_PREFIXES,
    extract_contract_name,
    extract_pragma_version,
    format_sanitization_report,
    resolve_mock_path,
    sanitize,
    validate_sanitized_code,
)


def _line_count(text: str) -> int:
    return text.count("\n")


class TestRemapping:
    """Whitelisted imports are redirected onto the mock library."""

    def test_plain_import(self) -> None:
        result = sanitize('import "@openzeppelin/contracts/access/Ownable.sol";\n')

        assert result.code == 'import "mocks/Ownable.sol";\n'
        assert len(result.remapped_imports) == 1
        assert result.remapped_imports[0].original == "@openzeppelin/contracts/access/Ownable.sol"
        assert result.remapped_imports[0].mocked == "mocks/Ownable.sol"
        assert result.removed_imports == []
        assert result.success is True

    def test_named_import_spanning_lines(self) -> None:
        source = (
            "import {\n"
            "    IERC20\n"
            '} from "@openzeppelin/contracts/token/ERC20/IERC20.sol";\n'
            "contract A {}\n"
        )

        result = sanitize(source)

        assert '} from "mocks/IERC20.sol";' in result.code
        assert "    IERC20\n" in result.code
        assert _line_count(result.code) == _line_count(source)

    def test_aliased_import_keeps_quotes_and_alias(self) -> None:
        result = sanitize("import '@openzeppelin/contracts/token/ERC20/ERC20.sol' as OZ;\n")

        assert result.code == "import 'mocks/ERC20.sol' as OZ;\n"

    def test_star_import(self) -> None:
        source = 'import * as Safe from "@openzeppelin/contracts/token/ERC20/utils/SafeERC20.sol";\n'

        result = sanitize(source)

        assert result.code == 'import * as Safe from "mocks/IERC20.sol";\n'

    def test_upgradeable_ownable_maps_to_ownable_mock(self) -> None:
        source = 'import "@openzeppelin/contracts-upgradeable/access/OwnableUpgradeable.sol";'

        result = sanitize(source)

        assert result.remapped_imports[0].mocked == "mocks/Ownable.sol"

    def test_indentation_preserved(self) -> None:
        result = sanitize('    import "@openzeppelin/contracts/access/Ownable.sol";\n')

        assert result.code == '    import "mocks/Ownable.sol";\n'

    def test_duplicates_are_recorded_per_occurrence(self) -> None:
        line = 'import "@openzeppelin/contracts/access/Ownable.sol";\n'

        result = sanitize(line * 2)

        assert len(result.remapped_imports) == 2


class TestRemoval:
    """Anything not whitelisted is commented out."""

    def test_unknown_import_is_commented_out(self) -> None:
        path = "@chainlink/contracts/src/v0.8/interfaces/AggregatorV3Interface.sol"

        result = sanitize(f'import "{path}";\ncontract A {{}}\n')

        assert result.code.startswith(
            '// IMPORT REMOVED BY SENTRY SANITIZER: "AggregatorV3Interface.sol"\n'
        )
        assert result.removed_imports == [path]
        assert result.remapped_imports == []

    def test_relative_import_is_removed(self) -> None:
        result = sanitize('import "./Library.sol";\n')

        assert result.removed_imports == ["./Library.sol"]
        assert "import" not in result.code.replace("IMPORT REMOVED", "")

    def test_multiline_removal_preserves_line_numbers(self) -> None:
        source = (
            "pragma solidity ^0.8.0;\n"
            "import {\n"
            "    Foo,\n"
            "    Bar\n"
            '} from "@uniswap/v3-core/contracts/interfaces/IUniswapV3Pool.sol";\n'
            "contract A {}\n"
        )

        result = sanitize(source)

        assert _line_count(result.code) == _line_count(source)
        assert result.code.splitlines()[5] == "contract A {}"
        assert result.removed_imports == ["@uniswap/v3-core/contracts/interfaces/IUniswapV3Pool.sol"]

    def test_removal_inside_block_comment_keeps_it_open(self) -> None:
        source = (
            "/*\n"
            'import "./Legacy.sol";\n'
            "*/\n"
            "contract A {}\n"
        )

        result = sanitize(source)

        lines = result.code.splitlines()
        assert lines[1] == '// IMPORT REMOVED BY SENTRY SANITIZER: "Legacy.sol"'
        assert "*/" not in lines[1]
        assert lines[2:] == ["*/", "contract A {}"]

    def test_removal_before_code_on_same_line(self) -> None:
        result = sanitize('import "./Legacy.sol"; import "@openzeppelin/contracts/access/Ownable.sol";\n')

        assert result.code == (
            '/* IMPORT REMOVED BY SENTRY SANITIZER: "Legacy.sol" */ import "mocks/Ownable.sol";\n'
        )
        assert result.removed_imports == ["./Legacy.sol"]

    def test_malformed_import_is_removed(self) -> None:
        result = sanitize("import ;\ncontract A {}\n")

        assert result.code.startswith("// MALFORMED IMPORT REMOVED BY SENTRY SANITIZER")
        assert result.removed_imports == ["import ;"]

    def test_empty_path_is_malformed(self) -> None:
        result = sanitize('import "";\n')

        assert "MALFORMED" in result.code
        assert len(result.removed_imports) == 1

    def test_two_statements_on_one_line(self) -> None:
        source = 'import "./A.sol"; import "@openzeppelin/contracts/access/Ownable.sol";\n'

        result = sanitize(source)

        assert result.removed_imports == ["./A.sol"]
        assert result.remapped_imports[0].mocked == "mocks/Ownable.sol"
        assert 'import "mocks/Ownable.sol";' in result.code

    def test_identifiers_starting_with_import_are_untouched(self) -> None:
        source = "contract A {\n    uint256 importantValue;\n}\n"

        result = sanitize(source)

        assert result.code == source
        assert result.removed_imports == []


class TestInvariants:
    """Properties that hold for every input."""

    SOURCES = [
        'import "@openzeppelin/contracts/access/Ownable.sol";\ncontract A is Ownable {}\n',
        'import "@openzeppelin/contracts/security/Pausable.sol";\ncontract A {}\n',
        'import {ERC20} from "@openzeppelin/contracts/token/ERC20/ERC20.sol";\n'
        'import "hardhat/console.sol";\ncontract T is ERC20 {}\n',
        "import {\n  A,\n  B\n} from '@chainlink/x/Y.sol';\ncontract Z {}\n",
    ]

    @pytest.mark.parametrize("source", SOURCES)
    def test_output_has_no_untrusted_prefix(self, source: str) -> None:
        result = sanitize(source)

        for prefix in UNTRUSTED_PREFIXES:
            assert prefix.lower() not in result.code.lower()

    @pytest.mark.parametrize("source", SOURCES)
    def test_idempotent(self, source: str) -> None:
        once = sanitize(source)
        twice = sanitize(once.code)

        assert twice.code == once.code
        assert twice.removed_imports == []
        assert all(m.original == m.mocked for m in twice.remapped_imports)

    @pytest.mark.parametrize("source", SOURCES)
    def test_every_import_is_accounted_for(self, source: str) -> None:
        statements = len(re.findall(r"(?m)^\s*import\b", source))

        result = sanitize(source)

        assert len(result.remapped_imports) + len(result.removed_imports) == statements
        assert _line_count(result.code) == _line_count(source)


class TestValidation:
    """Secondary pass over sanitizer output."""

    def test_untrusted_reference_outside_import_is_rejected(self) -> None:
        source = "// copied from @OpenZeppelin/contracts\ncontract A {}\n"

        with pytest.raises(SanitizationError) as exc_info:
            sanitize(source)

        assert exc_info.value.offending_match == "@OpenZeppelin/"
        assert exc_info.value.details["line"] == 1

    def test_clean_code_passes(self) -> None:
        validate_sanitized_code('import "mocks/Ownable.sol";\ncontract A {}\n')

    def test_inline_assembly_only_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        code = "contract A { function f() public { assembly { let x := 1 } } }"

        with caplog.at_level("WARNING"):
            validate_sanitized_code(code)

        assert "Inline assembly" in caplog.text


class TestRuleTable:
    """Ordered, first-match-wins rule evaluation."""

    def test_first_matching_rule_wins(self) -> None:
        rules = (
            ImportRule(re.compile(r"Token\.sol"), "mocks/First.sol"),
            ImportRule(re.compile(r"lib/Token\.sol"), "mocks/Second.sol"),
        )

        assert resolve_mock_path("lib/Token.sol", rules) == "mocks/First.sol"

    def test_no_match_returns_none(self) -> None:
        assert resolve_mock_path("@openzeppelin/contracts/proxy/Clones.sol") is None

    def test_every_rule_targets_a_mock(self) -> None:
        assert len(IMPORT_RULES) == 7
        assert MOCK_PATHS == {"mocks/Ownable.sol", "mocks/IERC20.sol", "mocks/ERC20.sol"}

    def test_custom_rules_are_used(self) -> None:
        rules = (ImportRule(re.compile(r"solmate/.*/Owned\.sol"), "mocks/Ownable.sol"),)

        result = sanitize('import "solmate/auth/Owned.sol";', rules=rules)

        assert result.code == 'import "mocks/Ownable.sol";'


class TestHelpers:
    """Source inspection helpers."""

    def test_extract_pragma_version(self) -> None:
        assert extract_pragma_version("pragma solidity ^0.8.20;\n") == "^0.8.20"
        assert extract_pragma_version("contract A {}") is None

    def test_extract_contract_name_skips_abstract_and_interfaces(self) -> None:
        source = (
            "interface IBank {}\n"
            "abstract contract Base {}\n"
            "contract Bank is Base {}\n"
            "abstract contract Tail {}\n"
        )

        assert extract_contract_name(source) == "Bank"

    def test_extract_contract_name_picks_last_concrete(self) -> None:
        assert extract_contract_name("contract Helper {}\ncontract Main {}\n") == "Main"

    def test_extract_contract_name_none(self) -> None:
        assert extract_contract_name("library L {}") is None

    def test_report_lists_imports(self) -> None:
        result = sanitize(
            'import "@openzeppelin/contracts/access/Ownable.sol";\nimport "./X.sol";\n'
        )

        report = format_sanitization_report(result)

        assert "Remapped Imports: 1" in report
        assert "Removed Imports: 1" in report
        assert "└─> mocks/Ownable.sol" in report
        assert "✗ ./X.sol" in report
