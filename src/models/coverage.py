"""Per-region fact coverage and store-wide counts.

:class:`RegionFactStats` is the raw aggregate the record store returns for
one region.  :class:`RegionCoverage` is the scored view derived from it by
:mod:`src.services.coverage_service`, and :class:`StoreSummary` holds the
document/chunk/fact totals shown by the operator ``status`` command.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.policy import DocumentStatus, FactCategory, Region


class CoverageLevel(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Coarse rating of how completely a region's facts span the taxonomy."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    NONE = "None"


class RegionFactStats(BaseModel):
    """Fact aggregates for one region as read from the record store."""

    model_config = ConfigDict(frozen=True)

    region: Region
    completed_documents: int = Field(default=0, ge=0)
    fact_count: int = Field(default=0, ge=0)
    confidence_sum: float = Field(default=0.0, ge=0.0)
    categories: frozenset[FactCategory] = Field(
        default_factory=frozenset,
        description="Distinct categories with at least one fact.",
    )


class RegionCoverage(BaseModel):
    """How much of the fact taxonomy a region's documents cover."""

    model_config = ConfigDict(frozen=True)

    region_id: str
    name: str
    abbreviation: str
    completed_documents: int = Field(ge=0, description="Documents in ``completed`` status.")
    fact_count: int = Field(ge=0)
    coverage_score: int = Field(ge=0, le=100, description="Percent of categories covered.")
    coverage_level: CoverageLevel
    avg_confidence: float = Field(ge=0.0, le=1.0)
    categories_covered: list[FactCategory] = Field(default_factory=list)
    missing_categories: list[FactCategory] = Field(default_factory=list)


class StoreSummary(BaseModel):
    """Row counts across the whole record store."""

    model_config = ConfigDict(frozen=True)

    documents_by_status: dict[DocumentStatus, int] = Field(default_factory=dict)
    total_documents: int = Field(default=0, ge=0)
    total_chunks: int = Field(default=0, ge=0)
    total_facts: int = Field(default=0, ge=0)
    total_regions: int = Field(default=0, ge=0)
