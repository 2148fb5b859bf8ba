"""
Keyword-based text scanner.

Stand-in for a real ML classifier: anything exposing ``scan(text) -> ScanResult``
can replace ``KeywordScanner`` without touching the classifiers or the flag path.
"""
from typing import Dict, List, Protocol, Sequence, Tuple

from app.modules.moderation.models import FlagType
from app.modules.moderation.schemas import ScanResult

FLAG_THRESHOLD = 0.3

HATE_SPEECH_KEYWORDS = [
    "hate", "racist", "discriminat", "bigot", "nazi", "kkk",
    "white power", "racial slur", "ethnic slur",
]

SPAM_KEYWORDS = [
    "click here", "free money", "win now", "urgent", "act now",
    "limited time", "risk free", "guarantee", "no obligation",
]

SEXUAL_KEYWORDS = [
    "nude", "sex", "porn", "xxx", "adult content", "explicit",
]

# (details key, flag type, keywords). Order breaks ties.
DEFAULT_CATEGORIES: List[Tuple[str, FlagType, Sequence[str]]] = [
    ("hate_speech", FlagType.HATE_SPEECH, HATE_SPEECH_KEYWORDS),
    ("spam", FlagType.SPAM, SPAM_KEYWORDS),
    ("sexual", FlagType.NUDITY, SEXUAL_KEYWORDS),
]


class ContentScanner(Protocol):
    def scan(self, text: str) -> ScanResult:
        ...


class KeywordScanner:
    def __init__(self, categories=None, threshold: float = FLAG_THRESHOLD):
        self.categories = categories if categories is not None else DEFAULT_CATEGORIES
        self.threshold = threshold

    def scan(self, text: str) -> ScanResult:
        lowered = (text or "").lower()

        matches: Dict[str, int] = {}
        max_score = 0.0
        flag_type = None

        for name, category_flag, keywords in self.categories:
            # Plain substring test, no tokenizing
            count = sum(1 for keyword in keywords if keyword in lowered)
            matches[name] = count
            if count == 0:
                continue
            score = min(count / len(keywords), 1.0)
            if score > max_score:
                max_score = score
                flag_type = category_flag

        if max_score <= self.threshold:
            return ScanResult(flagged=False)

        return ScanResult(
            flagged=True,
            flag_type=flag_type,
            confidence_score=max_score,
            details={"matches": matches},
        )


default_scanner = KeywordScanner()


def scan(text: str) -> ScanResult:
    return default_scanner.scan(text)
