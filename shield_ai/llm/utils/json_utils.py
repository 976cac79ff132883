"""
json_utils
==========

Utilities for cleaning, parsing and validating the JSON that SHIELD AI
receives from the model and stores on disk.

Design principles:
- Best-effort cleanup of model output, then a strict parser
- Fail explicitly, with enough context to diagnose the failure
- Schema-constrained responses
"""

from __future__ import annotations

import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Any, List

from jsonschema import Draft7Validator, ValidationError


SCHEMA_DIR = Path(__file__).resolve().parent.parent.parent / "schemas"

_FENCE_RE = re.compile(r"```(?:json)?([\s\S]*?)```")
_ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\ufeff]")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


class JSONExtractionError(ValueError):
    """Raised when JSON cannot be extracted from model output."""


# ----------------------------------------------------------------------
# Model response cleaning
# ----------------------------------------------------------------------

def clean_model_response(text: str) -> str:
    """
    Normalize raw model output so it can be handed to ``json.loads``.

    Steps:
    1. Keep the body of the first ``` fence (``json`` tag dropped)
    2. Keep the span from the first '{' to the last '}'
    3. Remove zero-width characters
    4. Remove trailing commas before '}' or ']'
    """
    cleaned = (text or "").strip()

    if "```" in cleaned:
        match = _FENCE_RE.search(cleaned)
        if match:
            cleaned = match.group(1).strip()

    if "{" in cleaned and "}" in cleaned:
        start = cleaned.index("{")
        end = cleaned.rindex("}") + 1
        cleaned = cleaned[start:end]

    cleaned = _ZERO_WIDTH_RE.sub("", cleaned)
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
    return cleaned.strip()


def parse_model_json(text: str) -> Dict[str, Any]:
    """
    Clean model output and parse it as a JSON object.

    Raises
    ------
    JSONExtractionError
        If the cleaned text is not a valid JSON object. The message holds
        both the parser error and the cleaned text.
    """
    cleaned = clean_model_response(text)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise JSONExtractionError(
            f"JSON Parse Error: {e}\nCleaned JSON: {cleaned}"
        ) from e

    if not isinstance(data, dict):
        raise JSONExtractionError(
            f"Expected a JSON object, got {type(data).__name__}\n"
            f"Cleaned JSON: {cleaned}"
        )
    return data


# ----------------------------------------------------------------------
# Schema loading & caching
# ----------------------------------------------------------------------

_VALIDATOR_CACHE: Dict[int, Draft7Validator] = {}


def load_json_schema(path: str | Path) -> Dict[str, Any]:
    """
    Load a JSON schema from disk.

    Parameters
    ----------
    path : str or Path
        Path to the JSON schema file.

    Returns
    -------
    dict
        Parsed JSON schema.

    Raises
    ------
    FileNotFoundError
        If the schema file does not exist.
    ValueError
        If the file is not valid JSON.
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"JSON schema not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            schema = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(
            f"Invalid JSON schema file: {path}"
        ) from e

    if not isinstance(schema, dict):
        raise ValueError(
            f"Invalid JSON schema structure (expected object): {path}"
        )

    return schema


@lru_cache(maxsize=None)
def load_packaged_schema(name: str) -> Dict[str, Any]:
    """
    Load one of the schemas shipped with the package, e.g. "response_schema".

    Loaded once per process so the validator cache (keyed by object id)
    always sees the same dict.
    """
    return load_json_schema(SCHEMA_DIR / f"{name}.json")


def get_validator(schema: Dict[str, Any]) -> Draft7Validator:
    """
    Get a cached Draft7Validator for the given schema.
    """
    key = id(schema)
    validator = _VALIDATOR_CACHE.get(key)

    if validator is None:
        validator = Draft7Validator(schema)
        _VALIDATOR_CACHE[key] = validator

    return validator


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------

def _format_error(err: ValidationError) -> Dict[str, Any]:
    return {
        "path": ".".join(str(p) for p in err.path) or "<root>",
        "message": err.message,
        "validator": err.validator,
    }


def validate_json(
    data: Dict[str, Any],
    schema: Dict[str, Any],
    *,
    strict: bool = True,
) -> None:
    """
    Validate JSON data against a schema.

    Raises
    ------
    ValueError
        If validation fails and strict=True.
    """
    errors = try_validate_json(data, schema)

    if errors and strict:
        messages = [
            f"{e['path']}: {e['message']}"
            for e in errors
        ]
        raise ValueError(
            "JSON schema validation failed:\n"
            + "\n".join(messages)
        )


def try_validate_json(
    data: Dict[str, Any],
    schema: Dict[str, Any],
) -> List[Dict[str, Any]]:
    """
    Return structured validation errors; empty when the data is valid.
    """
    validator = get_validator(schema)
    return [
        _format_error(e)
        for e in validator.iter_errors(data)
    ]
