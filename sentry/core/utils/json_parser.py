"""
JSON extraction for LLM responses.

Models are asked for a bare JSON object but frequently answer with:
- Markdown code blocks (```json ... ```)
- Explanatory prose before or after the object

Only the wrapping is tolerated. The extracted text must be valid JSON as-is;
no syntax repair is attempted.
"""

import json
import re
from typing import Any


class JSONParseError(Exception):
    """Raised when no JSON object can be extracted from a response."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        raw_response: str | None = None,
    ):
        super().__init__(message)
        self.original_error = original_error
        self.raw_response = raw_response


_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
_BARE_FENCE = re.compile(r"```[ \t]*\n?([\s\S]*?)```")


def extract_json_from_markdown(text: str) -> str | None:
    """Extract a JSON object from Markdown code blocks.

    Handles:
    - ```json ... ```
    - ``` ... ``` (only when the body starts with ``{``)

    Fences tagged with another language (```solidity) are skipped so that a
    model echoing the contract does not shadow its answer.

    Args:
        text: Text potentially containing markdown code blocks.

    Returns:
        Extracted JSON string or None if no suitable code block found.
    """
    json_block_match = _JSON_FENCE.search(text)
    if json_block_match:
        return json_block_match.group(1).strip()

    for match in _BARE_FENCE.finditer(text):
        content = match.group(1).strip()
        if content.startswith("{"):
            return content

    return None


def _balanced_object_at(text: str, start: int) -> str | None:
    """Return the brace-balanced substring starting at ``text[start] == '{'``."""
    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text[start:], start):
        if escape_next:
            escape_next = False
            continue

        if char == "\\" and in_string:
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return None


def extract_first_json_object(text: str) -> str | None:
    """Extract the first well-formed JSON object using bracket counting.

    Candidates are tried at each ``{`` in order; a balanced candidate that
    does not decode to a JSON object is skipped.

    Args:
        text: Text potentially containing a JSON object.

    Returns:
        Extracted JSON object string or None if not found.
    """
    start = text.find("{")
    while start != -1:
        candidate = _balanced_object_at(text, start)
        if candidate is not None:
            try:
                if isinstance(json.loads(candidate), dict):
                    return candidate
            except json.JSONDecodeError:
                pass
        start = text.find("{", start + 1)

    return None


def load_json_object(text: str) -> dict[str, Any]:
    """Decode the JSON object carried by an LLM response.

    Strategy:
    1. A Markdown fence wins when present; its body must decode.
    2. Otherwise the whole text is tried, then the first well-formed object.

    Args:
        text: Raw model output.

    Returns:
        Decoded JSON object.

    Raises:
        JSONParseError: If no JSON object can be decoded.
    """
    preview = text[:500] if len(text) > 500 else text
    stripped = text.strip()

    fenced = extract_json_from_markdown(stripped)
    if fenced is not None:
        try:
            data = json.loads(fenced)
        except json.JSONDecodeError as e:
            raise JSONParseError(
                f"Fenced block is not valid JSON: {e}",
                original_error=e,
                raw_response=preview,
            ) from e
        if not isinstance(data, dict):
            raise JSONParseError(
                f"Expected a JSON object, got {type(data).__name__}",
                raw_response=preview,
            )
        return data

    try:
        data = json.loads(stripped)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    candidate = extract_first_json_object(stripped)
    if candidate is None:
        raise JSONParseError("No JSON object found in response", raw_response=preview)
    return json.loads(candidate)
