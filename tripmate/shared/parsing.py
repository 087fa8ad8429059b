"""
JSON extraction for model output.

Classifier and router models are asked for a single JSON object, but in
practice the object may arrive wrapped in a markdown code block or followed
by trailing prose. These helpers cut out the first balanced object before
handing it to json / pydantic.
"""

import json
import re
from typing import Any, Dict

from tripmate.shared.errors import ParseError


_CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def extract_json_from_response(raw_response: str) -> str:
    """
    Extract JSON content from a model response.

    Handles multiple formats:
    - Raw JSON
    - JSON in markdown code blocks (```json ... ```)
    - JSON preceded or followed by prose

    Args:
        raw_response: Raw model response string

    Returns:
        Cleaned JSON string ready for parsing

    Raises:
        ParseError: If the response is empty
    """
    if raw_response is None or not raw_response.strip():
        raise ParseError("Empty model response")

    content = raw_response.strip()

    match = _CODE_BLOCK_PATTERN.search(content)
    if match:
        content = match.group(1).strip()

    # Skip any prose before the first brace
    start = content.find("{")
    if start > 0:
        content = content[start:]

    if content.startswith("{"):
        depth = 0
        in_string = False
        escaped = False
        for i, char in enumerate(content):
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return content[: i + 1]

    # No clear boundaries; let the JSON parser report the problem
    return content


def parse_json_object(raw_response: str) -> Dict[str, Any]:
    """
    Parse a model response into a JSON object.

    Raises:
        ParseError: If no JSON object can be decoded
    """
    json_str = extract_json_from_response(raw_response)

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse JSON: {e}\nContent: {json_str}")

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")

    return data
