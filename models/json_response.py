"""Helpers for pulling JSON objects out of free-form model responses."""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)


def extract_json_text(response: str) -> str:
    """Locate the JSON object in a response (handles markdown code fences and extra text)."""
    markdown_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", response, re.DOTALL)
    if markdown_match:
        return markdown_match.group(1)

    json_match = re.search(r"\{.*\}", response, re.DOTALL)
    if json_match:
        return json_match.group()

    logger.debug("No JSON found in response, attempting to parse entire response")
    return response.strip()


def repair_json(json_text: str) -> str:
    """Attempt to repair common JSON issues from small models."""
    repaired = json_text.strip()

    # Remove any trailing comma before closing braces/brackets
    repaired = re.sub(r",(\s*[}\]])", r"\1", repaired)

    # Fix missing quotes around keys
    repaired = re.sub(r"([{,]\s*)([a-zA-Z_][a-zA-Z0-9_]*)\s*:", r'\1"\2":', repaired)

    if not repaired.endswith("}"):
        logger.warning("JSON appears truncated, attempting to complete it")

        open_quotes = repaired.count('"') - repaired.count('\\"')
        if open_quotes % 2 == 1:
            repaired += '"'

        repaired = repaired.rstrip().rstrip(",")

        open_braces = repaired.count("{") - repaired.count("}")
        open_brackets = repaired.count("[") - repaired.count("]")

        # Close arrays first, then objects
        repaired += "]" * open_brackets
        repaired += "}" * open_braces

    # Remove any text after the final closing brace
    last_brace = repaired.rfind("}")
    if last_brace != -1:
        repaired = repaired[: last_brace + 1]

    return repaired


def parse_json_object(response: str) -> dict[str, Any]:
    """Parse the first JSON object in a model response.

    Raises:
        ValueError: no JSON object could be decoded
    """
    json_text = extract_json_text(response)
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError:
        logger.debug("Model JSON did not parse cleanly, attempting repair")
        try:
            data = json.loads(repair_json(json_text))
        except json.JSONDecodeError as e:
            raise ValueError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
