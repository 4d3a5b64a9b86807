"""Per-region coverage of the fact taxonomy.

A region's coverage score is the share of the eight fact categories that
have at least one extracted fact, as a whole percentage.  Combined with the
mean fact confidence it yields a coarse level:

  High    score >= 75 and mean confidence >= 0.7
  Medium  score >= 40 and mean confidence >= 0.5
  Low     any other region with at least one covered category
  None    no facts at all
"""

from __future__ import annotations

import math

import structlog

from src.interfaces.record_store import IRecordStore
from src.models.coverage import CoverageLevel, RegionCoverage, RegionFactStats, StoreSummary
from src.models.policy import FactCategory

logger = structlog.get_logger(logger_name=__name__)

EXPECTED_CATEGORIES: tuple[FactCategory, ...] = tuple(FactCategory)

HIGH_SCORE = 75
HIGH_CONFIDENCE = 0.7
MEDIUM_SCORE = 40
MEDIUM_CONFIDENCE = 0.5


def coverage_level(score: int, avg_confidence: float) -> CoverageLevel:
    if score >= HIGH_SCORE and avg_confidence >= HIGH_CONFIDENCE:
        return CoverageLevel.HIGH
    if score >= MEDIUM_SCORE and avg_confidence >= MEDIUM_CONFIDENCE:
        return CoverageLevel.MEDIUM
    if score > 0:
        return CoverageLevel.LOW
    return CoverageLevel.NONE


def score_region(stats: RegionFactStats) -> RegionCoverage:
    """Derive the scored coverage view from one region's raw aggregates."""
    covered = [c for c in EXPECTED_CATEGORIES if c in stats.categories]
    missing = [c for c in EXPECTED_CATEGORIES if c not in stats.categories]

    # Halves round up so 1 of 8 categories scores 13, not 12.
    score = math.floor(len(covered) / len(EXPECTED_CATEGORIES) * 100 + 0.5)
    avg_confidence = (
        round(stats.confidence_sum / stats.fact_count, 2) if stats.fact_count else 0.0
    )

    return RegionCoverage(
        region_id=stats.region.region_id,
        name=stats.region.name,
        abbreviation=stats.region.abbreviation,
        completed_documents=stats.completed_documents,
        fact_count=stats.fact_count,
        coverage_score=score,
        coverage_level=coverage_level(score, avg_confidence),
        avg_confidence=min(avg_confidence, 1.0),
        categories_covered=covered,
        missing_categories=missing,
    )


class CoverageService:
    """Read-only coverage and count reports over the record store."""

    def __init__(self, store: IRecordStore) -> None:
        self._store = store

    async def region_coverage(self) -> list[RegionCoverage]:
        """Score every known region, ordered by region name."""
        stats = await self._store.region_fact_stats()
        coverage = [score_region(s) for s in stats]
        logger.debug("region_coverage_computed", regions=len(coverage))
        return coverage

    async def summary(self) -> StoreSummary:
        return await self._store.summary_counts()
