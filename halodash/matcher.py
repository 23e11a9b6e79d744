"""Keyword search over existing reports."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from loguru import logger

from .config import EngineSettings
from .models import NamedQuery
from .report_cache import ReportCache

NAME_MATCH_SCORE = 10
DESCRIPTION_MATCH_SCORE = 3


def score_report(report: NamedQuery, keywords: Iterable[str]) -> int:
    """Score a report against keywords: +10 per name hit, +3 per description hit."""

    name = (report.name or "").lower()
    description = (report.description or "").lower()
    score = 0
    for keyword in keywords:
        keyword_lower = keyword.lower()
        if not keyword_lower:
            continue
        if keyword_lower in name:
            score += NAME_MATCH_SCORE
        if keyword_lower in description:
            score += DESCRIPTION_MATCH_SCORE
    return score


class ReportMatcher:
    """Finds the best existing, non-reserved report for a set of keywords."""

    def __init__(self, cache: ReportCache, settings: EngineSettings | None = None) -> None:
        self._cache = cache
        self._settings = settings or EngineSettings()

    def find_matching_report(self, keywords: Sequence[str]) -> NamedQuery | None:
        """
        Return the highest-scoring report whose score reaches the match threshold.

        Reports named with the reserved auto-synthesized prefix are never
        candidates. On a tie the report listed first wins.
        """
        if not keywords:
            return None

        best: NamedQuery | None = None
        best_score = 0
        for report in self._cache.get_all():
            if report.id is None or self._settings.is_reserved_name(report.name):
                continue
            score = score_report(report, keywords)
            if score > best_score:
                best, best_score = report, score

        if best is not None and best_score >= self._settings.match_threshold:
            logger.info(f"Found matching report: {best.name} (score: {best_score})")
            return best
        return None
