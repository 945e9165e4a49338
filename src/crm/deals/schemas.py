"""Pydantic schemas for the deal lifecycle -- stages, deals, activities, metrics.

Defines all structured types for the pipeline:
- Enums: DealStage (closed, with default probabilities), ActivityType
- Deal payloads: DealCreate, DealUpdate, Deal
- Activity: Activity, ActivityFailure
- Derived views: DashboardMetrics, StageSummary, PipelineBoard
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field


# ── Enums ───────────────────────────────────────────────────────────────────


class DealStage(str, Enum):
    """Sales pipeline stage for a deal.

    The set is fixed. Each stage carries the probability a deal gets when it
    enters the stage without an explicit override.
    """

    LEAD = "Lead"
    QUALIFIED = "Qualified"
    PROPOSAL = "Proposal"
    CLOSED_WON = "Closed Won"
    CLOSED_LOST = "Closed Lost"

    @property
    def default_probability(self) -> int:
        return STAGE_DEFAULT_PROBABILITY[self]

    @property
    def is_terminal(self) -> bool:
        """Closed stages do not count as active pipeline."""
        return self in TERMINAL_STAGES


STAGE_DEFAULT_PROBABILITY: dict[DealStage, int] = {
    DealStage.LEAD: 25,
    DealStage.QUALIFIED: 50,
    DealStage.PROPOSAL: 75,
    DealStage.CLOSED_WON: 100,
    DealStage.CLOSED_LOST: 0,
}

TERMINAL_STAGES: frozenset[DealStage] = frozenset(
    {DealStage.CLOSED_WON, DealStage.CLOSED_LOST}
)

# Board order, left to right.
PIPELINE_STAGES: list[DealStage] = list(DealStage)


class ActivityType(str, Enum):
    """Known activity types. Activity.type also accepts free-form strings."""

    DEAL_CREATED = "deal_created"
    STAGE_CHANGE = "stage_change"
    DEAL_UPDATED = "deal_updated"
    CONTACT_ADDED = "contact_added"


def _coerce_close_date(value: Any) -> Any:
    """Accept bare dates ("2025-01-01" or date objects) as midnight UTC."""
    if isinstance(value, str) and len(value) == 10:
        value = date.fromisoformat(value)
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value


CloseDate = Annotated[datetime | None, BeforeValidator(_coerce_close_date)]


# ── Deal Schemas ────────────────────────────────────────────────────────────


class DealCreate(BaseModel):
    """Input for creating a deal.

    Required fields are optional at the type level so that the lifecycle
    manager can report every missing field at once.
    """

    title: str | None = None
    contact_id: int | None = None
    value: float | None = None
    stage: DealStage | None = None
    probability: int | None = None
    expected_close_date: CloseDate = None


class DealUpdate(BaseModel):
    """Partial update for a deal. Only fields the caller sets are merged."""

    title: str | None = None
    contact_id: int | None = None
    value: float | None = None
    stage: DealStage | None = None
    probability: int | None = None
    expected_close_date: CloseDate = None


class Deal(BaseModel):
    """A persisted deal."""

    id: int
    title: str
    contact_id: int
    value: float
    stage: DealStage
    probability: int
    expected_close_date: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Activity Schemas ────────────────────────────────────────────────────────


class Activity(BaseModel):
    """Immutable audit record of a deal lifecycle event."""

    id: int
    type: str
    description: str
    deal_id: int | None = None
    timestamp: datetime | None = None


class ActivityFailure(BaseModel):
    """An activity that could not be recorded after a successful deal write."""

    deal_id: int | None = None
    type: str
    description: str
    error: str
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


# ── Derived Views ───────────────────────────────────────────────────────────


class DashboardMetrics(BaseModel):
    """Headline numbers for the dashboard."""

    total_contacts: int = 0
    active_deals: int = 0
    pipeline_value: float = 0.0
    win_rate: int = 0


class StageSummary(BaseModel):
    """Count and summed value of the deals in one stage."""

    stage: DealStage
    count: int = 0
    value: float = 0.0
    deals: list[Deal] = Field(default_factory=list)


class PipelineBoard(BaseModel):
    """All stages in pipeline order with their deals."""

    stages: list[StageSummary] = Field(default_factory=list)
    total_value: float = 0.0
