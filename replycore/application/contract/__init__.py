"""Output contract: parsing and sanitizing model replies."""

from .parser import OutputContractParser, decode_reply_object, extract_json_object, strip_fences
from .sanitizer import (
    ForbiddenPatternSet,
    SanitizeResult,
    Sanitizer,
    find_dates,
    strip_sign_off,
    word_overlap,
)

__all__ = [
    "OutputContractParser",
    "decode_reply_object",
    "extract_json_object",
    "strip_fences",
    "ForbiddenPatternSet",
    "SanitizeResult",
    "Sanitizer",
    "find_dates",
    "strip_sign_off",
    "word_overlap",
]
