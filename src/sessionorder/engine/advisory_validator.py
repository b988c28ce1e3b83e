"""
SessionOrder Advisory Response Validator

Everything returned by the advisory service is untrusted input. This
module validates it against a fixed JSON Schema contract and HTML-escapes
every string before it can reach storage or display.

Key features:
- ADVISORY_RESPONSE_SCHEMA is a plain JSON Schema dict checked with
  jsonschema's Draft 2020-12 validator
- Every violation is collected as a path-qualified string
  ("response.script.firm: ...")
- NaN is never accepted as a number
- Validation never raises

Usage:
    result = validate_advisory_response(body)
    if result.valid:
        packet = Recommendation.from_advisory(result.sanitized)
    else:
        logger.warning("Advisory rejected: %s", result.errors)
"""
from __future__ import annotations

import html
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Optional

from jsonschema import Draft202012Validator, validators
from jsonschema.exceptions import ValidationError

from ..models import CATEGORY_IDS


# =============================================================================
# Contract
# =============================================================================

ADVISORY_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["category", "severity", "confidence", "recommendedResponse", "script"],
    "properties": {
        "category": {"type": "string", "enum": list(CATEGORY_IDS)},
        "severity": {"type": "integer", "minimum": 1, "maximum": 4},
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "intentHypothesis": {
            "type": "object",
            "properties": {
                "label": {"type": "string", "maxLength": 100},
                "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                "alternatives": {
                    "type": "array",
                    "maxItems": 3,
                    "items": {"type": "string", "maxLength": 100},
                },
            },
        },
        "recommendedResponse": {
            "type": "object",
            "required": ["immediateStep"],
            "properties": {
                "immediateStep": {"type": "string", "maxLength": 200},
                "ladderAction": {"type": "string", "maxLength": 200},
                "ladderStepSuggested": {"type": "integer", "minimum": 1, "maximum": 5},
                "restorative": {
                    "type": "object",
                    "properties": {
                        "type": {"type": "string", "maxLength": 50},
                        "prompt": {"type": "string", "maxLength": 300},
                    },
                },
                "consequence": {
                    "type": "object",
                    "properties": {
                        "type": {"type": "string", "maxLength": 50},
                        "detail": {"type": "string", "maxLength": 200},
                    },
                },
            },
        },
        "script": {
            "type": "object",
            "required": ["gentle", "neutral", "firm"],
            "properties": {
                "gentle": {"type": "string", "maxLength": 300},
                "neutral": {"type": "string", "maxLength": 300},
                "firm": {"type": "string", "maxLength": 300},
            },
        },
        "preventionTip": {"type": "string", "maxLength": 300},
        "fairnessNotes": {
            "type": "array",
            "maxItems": 5,
            "items": {"type": "string", "maxLength": 200},
        },
    },
}

ROOT_PATH = "response"


# =============================================================================
# Validator
# =============================================================================

def _is_number(checker, value: Any) -> bool:
    # json.loads accepts NaN; it satisfies no bound, so it is not a number here
    if not Draft202012Validator.TYPE_CHECKER.is_type(value, "number"):
        return False
    return not (isinstance(value, float) and math.isnan(value))


TYPE_CHECKER = Draft202012Validator.TYPE_CHECKER.redefine("number", _is_number)

AdvisoryValidator = validators.extend(Draft202012Validator, type_checker=TYPE_CHECKER)

RESPONSE_VALIDATOR = AdvisoryValidator(ADVISORY_RESPONSE_SCHEMA)


def validate_type(value: Any, expected: str) -> bool:
    """
    Check a value against a JSON type name.

    Raises:
        jsonschema.exceptions.UnknownType: If expected is not a JSON type
    """
    return TYPE_CHECKER.is_type(value, expected)


def json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def format_path(root: str, parts: Iterable[Any]) -> str:
    path = root
    for part in parts:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def _describe(error: ValidationError) -> str:
    bound = error.validator_value
    if error.validator == "type":
        return f"Expected {bound}, got {json_type_name(error.instance)}"
    if error.validator == "enum":
        return f"Value must be one of: {', '.join(str(v) for v in bound)}"
    if error.validator == "minimum":
        return f"Value must be >= {bound}"
    if error.validator == "maximum":
        return f"Value must be <= {bound}"
    if error.validator == "maxLength":
        return f"String exceeds max length of {bound}"
    if error.validator == "maxItems":
        return f"Array exceeds max items of {bound}"
    return error.message


def error_messages(error: ValidationError, root: str) -> list[str]:
    """Our message strings for one jsonschema error."""
    path = format_path(root, error.absolute_path)
    if error.validator == "required":
        # One error per missing name; report each name under its own path
        return [
            f"{path}.{name}: Required property missing"
            for name in error.validator_value
            if name not in error.instance
        ]
    return [f"{path}: {_describe(error)}"]


def collect_errors(errors: Iterable[ValidationError], root: str) -> list[str]:
    messages: list[str] = []
    for error in errors:
        for message in error_messages(error, root):
            if message not in messages:
                messages.append(message)
    return messages


def validate_value(value: Any, schema: dict[str, Any], path: str = "") -> list[str]:
    """
    Validate a value against a schema.

    Returns:
        Every violation found, as "<path>: <message>" strings. Empty if valid.
    """
    return collect_errors(AdvisoryValidator(schema).iter_errors(value), path)


# =============================================================================
# Sanitization
# =============================================================================

def escape_html(text: str) -> str:
    """Escape & < > " ' and / for safe display."""
    return html.escape(text, quote=True).replace("/", "&#x2F;")


def sanitize_value(value: Any) -> Any:
    """HTML-escape every string, recursing through lists and dicts."""
    if isinstance(value, str):
        return escape_html(value)
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    if isinstance(value, dict):
        return {key: sanitize_value(item) for key, item in value.items()}
    return value


# =============================================================================
# Entry Point
# =============================================================================

@dataclass
class ValidationResult:
    """
    Outcome of validating one advisory response.

    sanitized is set only when valid is True.
    """
    valid: bool
    errors: list[str] = field(default_factory=list)
    sanitized: Optional[dict[str, Any]] = None


def validate_advisory_response(response: Any) -> ValidationResult:
    """
    Validate and sanitize an advisory response body.

    Any deviation from the contract rejects the whole response; there is
    no partial acceptance.
    """
    if not isinstance(response, dict):
        return ValidationResult(valid=False, errors=["Response must be an object"])

    errors = collect_errors(RESPONSE_VALIDATOR.iter_errors(response), ROOT_PATH)
    if errors:
        return ValidationResult(valid=False, errors=errors)

    return ValidationResult(valid=True, sanitized=sanitize_value(response))
