"""Preference-driven filtering and ranking of torrent candidates.

Score tiers are strictly dominant: a better quality rank always beats any
combination of lower tiers, and so on down to seeders, which only break ties.

Tier                    Points
quality rank            10_000 per step (first preference highest)
format rank              1_000 per step (at most one quality step)
small size bonus           500 (below median of the ranked set)
remux bonus                100
seeders           0..50 (log10 scale, capped)
"""

from __future__ import annotations

import math
import statistics

import structlog

from downloadarr.domain.entities.acquisition import ScoredCandidate, TorrentCandidate
from downloadarr.domain.entities.preferences import TorrentFormat, TorrentPreferences

log = structlog.get_logger(__name__)

QUALITY_WEIGHT = 10_000
FORMAT_WEIGHT = 1_000
SMALL_SIZE_BONUS = 500
REMUX_BONUS = 100
MAX_SEEDER_SCORE = 50.0

assert (
    FORMAT_WEIGHT * len(TorrentFormat) + SMALL_SIZE_BONUS + REMUX_BONUS + MAX_SEEDER_SCORE
    < QUALITY_WEIGHT
)


def seeder_score(seeders: int) -> float:
    """Monotonic in seeders, capped so one outlier cannot dominate."""
    return min(math.log10(max(seeders, 0) + 1) * 10, MAX_SEEDER_SCORE)


class PreferenceEngine:
    """Filters and scores candidates against one preferences snapshot."""

    def __init__(self, preferences: TorrentPreferences) -> None:
        self._prefs = preferences
        self._blacklist = [w.lower() for w in preferences.blacklisted_words if w]
        self._trusted = {i.lower() for i in preferences.trusted_indexers if i}

    @property
    def preferences(self) -> TorrentPreferences:
        return self._prefs

    @property
    def auto_select(self) -> bool:
        return self._prefs.auto_select_best

    # -- filter ------------------------------------------------------------

    def rejection_reason(self, candidate: TorrentCandidate) -> str | None:
        """Why *candidate* is filtered out, or None if it is admitted."""
        if candidate.seeders < self._prefs.min_seeders:
            return "too_few_seeders"
        if candidate.size_gb > self._prefs.max_size_gb:
            return "too_large"
        title = candidate.title.lower()
        for word in self._blacklist:
            if word in title:
                return "blacklisted_word"
        if self._trusted and candidate.indexer.lower() not in self._trusted:
            return "untrusted_indexer"
        return None

    def accepts(self, candidate: TorrentCandidate) -> bool:
        return self.rejection_reason(candidate) is None

    def filter(self, candidates: list[TorrentCandidate]) -> list[TorrentCandidate]:
        kept: list[TorrentCandidate] = []
        for c in candidates:
            reason = self.rejection_reason(c)
            if reason is None:
                kept.append(c)
            else:
                log.debug("candidate_rejected", title=c.title, reason=reason)
        return kept

    # -- score -------------------------------------------------------------

    def score(
        self,
        candidate: TorrentCandidate,
        *,
        median_size_bytes: float | None = None,
    ) -> float:
        prefs = self._prefs
        total = 0.0

        if candidate.quality in prefs.preferred_qualities:
            rank = prefs.preferred_qualities.index(candidate.quality)
            total += (len(prefs.preferred_qualities) - rank) * QUALITY_WEIGHT

        if candidate.format in prefs.preferred_formats:
            rank = prefs.preferred_formats.index(candidate.format)
            # Bounded by the enum size, not the list length.
            total += (len(TorrentFormat) - rank) * FORMAT_WEIGHT

        if (
            prefs.prefer_small_size
            and median_size_bytes is not None
            and candidate.size_bytes < median_size_bytes
        ):
            total += SMALL_SIZE_BONUS

        if prefs.prefer_remux and "remux" in candidate.title.lower():
            total += REMUX_BONUS

        total += seeder_score(candidate.seeders)
        return round(total, 3)

    def rank(self, candidates: list[TorrentCandidate]) -> list[ScoredCandidate]:
        """Filter, score and sort descending. Ties keep input order."""
        survivors = self.filter(candidates)
        if not survivors:
            return []
        median = statistics.median(c.size_bytes for c in survivors)
        scored = [
            ScoredCandidate(candidate=c, score=self.score(c, median_size_bytes=median))
            for c in survivors
        ]
        scored.sort(key=lambda s: s.score, reverse=True)
        log.debug(
            "candidates_ranked",
            received=len(candidates),
            kept=len(scored),
            top_score=scored[0].score,
        )
        return scored

    def best(self, candidates: list[TorrentCandidate]) -> ScoredCandidate | None:
        ranked = self.rank(candidates)
        return ranked[0] if ranked else None
