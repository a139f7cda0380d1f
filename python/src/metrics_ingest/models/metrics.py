"""
Request, option and result models for the metrics read path.

Canonical metric records are plain dicts (``MetricRecord``) because each
provider contributes its own measures and unmapped provider keys are kept
verbatim. Everything a caller configures is a Pydantic model so invalid
input fails before any network call.
"""

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MetricRecord = Dict[str, Any]

MAX_RANGE_DAYS = 365

AggregateFunction = Literal["sum", "average", "count", "min", "max"]


class FetchRequest(BaseModel):
    """
    Report request shared by all providers.

    ``filters`` holds provider-native filter clauses (e.g.
    ``dimensionFilterGroups`` for search console, ``dimensionFilter`` for
    analytics) and is merged verbatim into the report body.

    Example:
        >>> request = FetchRequest(
        ...     start_date="2026-01-01",
        ...     end_date="2026-01-07",
        ...     dimensions=["date", "query"],
        ... )
    """

    start_date: date = Field(..., description="Report start date (inclusive)")
    end_date: date = Field(..., description="Report end date (inclusive)")
    dimensions: List[str] = Field(default_factory=list)
    metrics: List[str] = Field(default_factory=list, description="Analytics metric names")
    filters: Dict[str, Any] = Field(default_factory=dict)
    page_size: Optional[int] = Field(default=None, ge=1, le=100000)
    start_offset: int = Field(default=0, ge=0)

    @field_validator("dimensions", "metrics")
    @classmethod
    def validate_names(cls, v: List[str]) -> List[str]:
        """Reject blank dimension or metric names."""
        for name in v:
            if not name or not name.strip():
                raise ValueError("Dimension and metric names must be non-empty")
        return v

    @model_validator(mode="after")
    def validate_date_range(self) -> "FetchRequest":
        """Ensure start <= end and the inclusive range is at most 365 days."""
        if self.start_date > self.end_date:
            raise ValueError(
                "Invalid date range: start_date must be before or equal to end_date"
            )
        if self.range_days > MAX_RANGE_DAYS:
            raise ValueError(
                f"Invalid date range: maximum {MAX_RANGE_DAYS} days allowed"
            )
        return self

    @property
    def range_days(self) -> int:
        """Number of calendar days in the range, inclusive."""
        return (self.end_date - self.start_date).days + 1

    def canonical_payload(self) -> Dict[str, Any]:
        """JSON-safe representation used for cache and sync keys."""
        return self.model_dump(mode="json")


class AggregateSpec(BaseModel):
    """Reducer applied to normalized records."""

    function: AggregateFunction = "sum"
    group_by: List[str] = Field(default_factory=list)


class FetchOptions(BaseModel):
    """Per-call behaviour switches for ``fetch_metrics``."""

    use_cache: bool = True
    incremental: bool = False
    validate_data: bool = True
    aggregate: Optional[AggregateSpec] = None


class QualityReport(BaseModel):
    """Advisory data quality summary. Never persisted."""

    completeness: float = Field(..., ge=0.0, le=1.0)
    freshness: float = Field(..., ge=0.0, le=1.0)
    anomalies: List[str] = Field(default_factory=list)
    missing_dates: List[str] = Field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        """Whether any anomaly was flagged."""
        return bool(self.anomalies)


class FetchResult(BaseModel):
    """Records plus the quality report computed for them."""

    records: List[MetricRecord]
    quality: Optional[QualityReport] = None
    from_cache: bool = False


class SitemapContent(BaseModel):
    """Per-type content counts reported for a sitemap."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = ""
    submitted: int = 0
    indexed: Optional[int] = None


class SitemapInfo(BaseModel):
    """One entry of the provider's sitemap listing."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    path: str
    type: Optional[str] = None
    last_submitted: Optional[str] = Field(default=None, alias="lastSubmitted")
    is_sitemaps_index: bool = Field(default=False, alias="isSitemapsIndex")
    is_pending: bool = Field(default=False, alias="isPending")
    errors: int = 0
    warnings: int = 0
    contents: List[SitemapContent] = Field(default_factory=list)


class SitemapResult(BaseModel):
    """Outcome of a sitemap submission. Failures are reported, not raised."""

    success: bool
    message: Optional[str] = None
