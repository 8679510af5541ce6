"""Parsing of raw model output into a structured reply."""

import json
import re
from typing import Any, Dict, List, Optional, Sequence

from jsonschema import Draft7Validator

from .sanitizer import Sanitizer
from replycore.core.exceptions import ContractError, ParseError
from replycore.core.models import (
    HistoryMessage,
    ParseOutcome,
    ServiceType,
    Stage,
    StructuredReply,
)
from replycore.utils.logger import get_logger

logger = get_logger(__name__)

FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)

DEFAULT_CONFIDENCE = 0.5

REPLY_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "reply": {"type": "string", "minLength": 1, "pattern": r"\S"},
        "service": {"type": "string"},
        "stage": {"type": "string"},
        "needsHuman": {},
        "missing": {},
        "confidence": {},
    },
    "required": ["reply"],
}

_validator = Draft7Validator(REPLY_SCHEMA)


def strip_fences(text: str) -> str:
    """Remove markdown code-fence markers."""
    return FENCE_RE.sub("", text).strip()


def extract_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` substring.

    Braces inside JSON strings are ignored. Returns None when no object
    closes.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            char = text[i]
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
                    return text[start : i + 1]
        start = text.find("{", start + 1)
    return None


def decode_reply_object(raw_text: str) -> Dict[str, Any]:
    """
    Decode raw model text into the reply object.

    Raises:
        ParseError: If no JSON object can be decoded or it lacks a
            non-empty string ``reply``
    """
    candidate = strip_fences(raw_text)
    extracted = extract_json_object(candidate)
    if extracted is not None:
        candidate = extracted

    try:
        data = json.loads(candidate)
    except ValueError as e:
        raise ParseError(f"JSON parse error: {e}")

    if not isinstance(data, dict):
        raise ParseError("JSON parse error: expected an object")

    errors = sorted(_validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        logger.debug(f"Reply object failed schema validation: {errors[0].message}")
        raise ParseError('Missing or invalid "reply" field')
    return data


class OutputContractParser:
    """Turns raw model text into a sanitizer-approved StructuredReply.

    Pure validation: no I/O beyond logging.
    """

    def __init__(self, sanitizer: Optional[Sanitizer] = None):
        self.sanitizer = sanitizer or Sanitizer()

    def parse(self, raw_text: str, history: Sequence[HistoryMessage] = ()) -> ParseOutcome:
        """
        Parse and sanitize raw model output.

        Args:
            raw_text: Text returned by the provider
            history: Conversation history the reply answers

        Returns:
            ParseOutcome with either a structured reply or the rejection reason
        """
        try:
            data = decode_reply_object(raw_text)
            reply = self.sanitizer.sanitize(data["reply"], history)
        except ContractError as e:
            return ParseOutcome(structured=None, raw_text=raw_text, parse_error=str(e))

        structured = StructuredReply(
            reply=reply,
            service=_enum_value(ServiceType, data.get("service"), ServiceType.UNKNOWN),
            stage=_enum_value(Stage, data.get("stage"), Stage.QUALIFY),
            needs_human=_flag(data.get("needsHuman")),
            missing=_string_list(data.get("missing")),
            confidence=_confidence(data.get("confidence")),
        )
        return ParseOutcome(structured=structured, raw_text=raw_text)


def _enum_value(enum_cls, value: Any, default):
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            logger.debug(f"Unknown {enum_cls.__name__} value {value!r}, using {default.value}")
    return default


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    return float(max(0.0, min(1.0, value)))
