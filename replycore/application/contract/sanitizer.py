"""Safety checks applied to a candidate reply before it reaches a customer."""

import re
import string
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import yaml

from replycore.core.exceptions import ConfigurationError, SanitizerBlocked
from replycore.core.models import Direction, HistoryMessage
from replycore.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PATTERNS_PATH = Path(__file__).parent / "forbidden_patterns.yaml"

NOTED_RE = re.compile(r"\bnoted\b")

_MONTH = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?"
DATE_PATTERNS = [
    re.compile(rf"\b\d{{1,2}}(?:st|nd|rd|th)?\s+(?:of\s+)?{_MONTH},?\s+\d{{4}}\b", re.IGNORECASE),
    re.compile(rf"\b{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}\b", re.IGNORECASE),
    re.compile(r"\b\d{4}-\d{1,2}-\d{1,2}\b"),
    re.compile(r"\b\d{1,2}[/.-]\d{1,2}[/.-]\d{4}\b"),
]

# Standalone closing line: a sign-off, optionally followed by a short name
TRAILING_SIGN_OFF_RE = re.compile(
    r"(?:^|(?<=[.!?\n]))\s*(?i:best regards|regards|sincerely|thank you|thanks)"
    r"(?:[,!.]?\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)?[,.!]?\s*$"
)


@dataclass(frozen=True)
class ForbiddenPattern:
    category: str
    source: str
    regex: "re.Pattern"


class ForbiddenPatternSet:
    """Versioned list of forbidden reply patterns, grouped by category."""

    def __init__(self, patterns: Sequence[ForbiddenPattern], version: int = 0):
        self.patterns = list(patterns)
        self.version = version

    @classmethod
    def from_dict(cls, data: Dict) -> "ForbiddenPatternSet":
        """
        Build a pattern set from ``{version, categories: {name: {patterns}}}``.

        Raises:
            ConfigurationError: If the data is malformed or a pattern does not compile
        """
        if not isinstance(data, dict) or not isinstance(data.get("categories"), dict):
            raise ConfigurationError("Forbidden pattern data must define 'categories'")

        patterns = []
        for category, entry in data["categories"].items():
            for source in (entry or {}).get("patterns", []):
                try:
                    regex = re.compile(source, re.IGNORECASE)
                except re.error as e:
                    raise ConfigurationError(f"Invalid forbidden pattern {source!r} in {category}: {e}")
                patterns.append(ForbiddenPattern(category=category, source=source, regex=regex))

        return cls(patterns, version=int(data.get("version", 0)))

    @classmethod
    def load(cls, path: Optional[str] = None) -> "ForbiddenPatternSet":
        """Load patterns from YAML, defaulting to the packaged list."""
        pattern_path = Path(path) if path else DEFAULT_PATTERNS_PATH
        try:
            with open(pattern_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in forbidden pattern file: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error loading forbidden patterns: {e}")

        pattern_set = cls.from_dict(data)
        logger.debug(f"Loaded {len(pattern_set.patterns)} forbidden patterns (version {pattern_set.version})")
        return pattern_set

    def first_match(self, text: str) -> Optional[ForbiddenPattern]:
        for pattern in self.patterns:
            if pattern.regex.search(text):
                return pattern
        return None

    def categories(self) -> List[str]:
        return list(dict.fromkeys(p.category for p in self.patterns))


@dataclass
class SanitizeResult:
    sanitized: str
    blocked: bool
    reason: Optional[str] = None


def _words(text: str) -> List[str]:
    return [w.strip(string.punctuation) for w in text.lower().split()]


def word_overlap(reply: str, reference: str, min_length: int = 4) -> float:
    """Share of the reference's words (of at least ``min_length`` chars) found in the reply."""
    reference_words = [w for w in _words(reference) if len(w) >= min_length]
    if not reference_words:
        return 0.0
    reference_set = set(reference_words)
    matching = [w for w in _words(reply) if len(w) >= min_length and w in reference_set]
    return len(matching) / len(reference_words)


def find_dates(text: str) -> List[str]:
    """Calendar dates mentioned in text, whitespace-normalized and lower-cased."""
    found = []
    for pattern in DATE_PATTERNS:
        for match in pattern.finditer(text):
            found.append(" ".join(match.group(0).lower().split()))
    return found


class Sanitizer:
    """Rejects replies that leak meta text, parrot, repeat or invent facts.

    Checks run in order: forbidden patterns, parroting, repetition of recent
    outbound turns, then dates absent from the history. The first failing
    check decides the rejection reason.
    """

    def __init__(
        self,
        patterns: Optional[ForbiddenPatternSet] = None,
        parrot_distance: int = 50,
        repetition_threshold: float = 0.8,
        repetition_window: int = 3,
    ):
        self.patterns = patterns or ForbiddenPatternSet.load()
        self.parrot_distance = parrot_distance
        self.repetition_threshold = repetition_threshold
        self.repetition_window = repetition_window

    @classmethod
    def from_config(cls, config: Dict) -> "Sanitizer":
        """Build from the ``contract`` config section."""
        return cls(
            patterns=ForbiddenPatternSet.load(config.get("forbidden_patterns_path")),
            parrot_distance=int(config.get("parrot_distance", 50)),
            repetition_threshold=float(config.get("repetition_threshold", 0.8)),
            repetition_window=int(config.get("repetition_window", 3)),
        )

    def check(self, reply: str, history: Sequence[HistoryMessage]) -> SanitizeResult:
        """Run every check; on acceptance trailing sign-offs are stripped."""
        for check in (self._check_forbidden, self._check_parroting, self._check_repetition, self._check_dates):
            reason = check(reply, history)
            if reason:
                logger.info(f"Reply blocked: {reason}")
                return SanitizeResult(sanitized="", blocked=True, reason=reason)

        return SanitizeResult(sanitized=strip_sign_off(reply), blocked=False)

    def sanitize(self, reply: str, history: Sequence[HistoryMessage]) -> str:
        """
        Return the cleaned reply.

        Raises:
            SanitizerBlocked: If any check rejects the reply
        """
        result = self.check(reply, history)
        if result.blocked:
            raise SanitizerBlocked(result.reason)
        return result.sanitized

    def _check_forbidden(self, reply: str, history: Sequence[HistoryMessage]) -> Optional[str]:
        match = self.patterns.first_match(reply)
        if match:
            return f'Blocked: Contains forbidden pattern "{match.source}" ({match.category})'
        return None

    def _check_parroting(self, reply: str, history: Sequence[HistoryMessage]) -> Optional[str]:
        reply_lower = reply.lower()
        noted_positions = [m.start() for m in NOTED_RE.finditer(reply_lower)]
        if not noted_positions:
            return None

        for message in _last(history, Direction.INBOUND, 2):
            body = message.text.lower().strip()
            if len(body) <= 5:
                continue
            words = [w for w in _words(body) if len(w) >= 3][:5]
            for word in words:
                for occurrence in re.finditer(re.escape(word), reply_lower):
                    if any(abs(occurrence.start() - pos) < self.parrot_distance for pos in noted_positions):
                        return "Blocked: Repeats customer's words with \"noted\""
        return None

    def _check_repetition(self, reply: str, history: Sequence[HistoryMessage]) -> Optional[str]:
        current = reply.lower().strip()
        if len(current) <= 20:
            return None

        for message in _last(history, Direction.OUTBOUND, self.repetition_window):
            previous = message.text.lower().strip()
            if len(previous) <= 20:
                continue
            similarity = word_overlap(current, previous)
            if similarity > self.repetition_threshold:
                return f"Blocked: Repeats a recent assistant message ({round(similarity * 100)}% similarity)"
        return None

    def _check_dates(self, reply: str, history: Sequence[HistoryMessage]) -> Optional[str]:
        dates = find_dates(reply)
        if not dates:
            return None

        history_text = " ".join(" ".join(m.text.lower().split()) for m in history)
        for date in dates:
            if date not in history_text:
                return f'Blocked: Invented date "{date}" not found in conversation'
        return None


def strip_sign_off(reply: str) -> str:
    """Remove a trailing sign-off; a reply that is only a sign-off is kept."""
    text = reply.strip()
    stripped = TRAILING_SIGN_OFF_RE.sub("", text).strip()
    return stripped or text


def _last(history: Iterable[HistoryMessage], direction: Direction, count: int) -> List[HistoryMessage]:
    matching = [m for m in history if m.direction == direction]
    return matching[-count:] if count > 0 else []
