"""Content filter: flags messages that look like attempts to take a booking off-platform.

Matching is a case-insensitive substring test against a fixed, versioned term
list. Flagging never blocks delivery; it marks the message for review.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from marketplace.settings import settings

FLAG_REASON_PREFIX = "Automatic content filtering"


@dataclass(frozen=True)
class FilterResult:
    flagged: bool
    matched_terms: List[str] = field(default_factory=list)
    version: str = ""

    @property
    def reason(self) -> Optional[str]:
        if not self.flagged:
            return None
        return f"{FLAG_REASON_PREFIX}: {', '.join(self.matched_terms)}"


class ContentFilter:
    """Deterministic classifier. Same text and term list always give the same result."""

    def __init__(self, terms: Iterable[str], version: str):
        seen = set()
        self.terms: List[str] = []
        for term in terms:
            term = term.strip().lower()
            if term and term not in seen:
                seen.add(term)
                self.terms.append(term)
        self.version = version

    def check(self, text: Optional[str]) -> FilterResult:
        lowered = (text or "").lower()
        matched = [term for term in self.terms if term in lowered]
        return FilterResult(flagged=bool(matched), matched_terms=matched, version=self.version)


def get_content_filter() -> ContentFilter:
    """Filter built from the current configuration."""
    return ContentFilter(settings.content_filter_terms, settings.content_filter_version)
