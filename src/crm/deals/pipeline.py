"""Pipeline aggregation -- derived per-stage and dashboard views over deals.

Everything here is read-only. The module-level functions are pure functions
of the deal (and contact) collections they are given; PipelineAggregator
only loads those collections from the record store and hands them over.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import datetime

import structlog

from src.crm.contacts.schemas import Contact
from src.crm.deals.schemas import (
    PIPELINE_STAGES,
    DashboardMetrics,
    Deal,
    DealStage,
    PipelineBoard,
    StageSummary,
)
from src.crm.records.store import RecordKind, RecordStore, SortSpec

logger = structlog.get_logger(__name__)

UNKNOWN_CONTACT = "Unknown Contact"


# ── Pure Aggregations ───────────────────────────────────────────────────────


def deals_by_stage(deals: Iterable[Deal], stage: DealStage) -> list[Deal]:
    return [d for d in deals if d.stage == stage]


def stage_value(deals: Iterable[Deal], stage: DealStage) -> float:
    """Summed value of the deals in a stage, 0 when the stage is empty."""
    return math.fsum(d.value for d in deals_by_stage(deals, stage))


def total_value(deals: Iterable[Deal], stage: DealStage | None = None) -> float:
    """Summed value of all deals, or of one stage when given."""
    if stage is not None:
        return stage_value(deals, stage)
    return math.fsum(d.value for d in deals)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def dashboard_metrics(deals: Iterable[Deal], total_contacts: int = 0) -> DashboardMetrics:
    """Compute the headline metrics.

    active_deals counts deals outside the two closed stages and
    pipeline_value sums their values. win_rate is the rounded percentage of
    closed deals that were won, 0 when nothing has closed yet.
    """
    active_count = 0
    active_values: list[float] = []  # summed with fsum, independent of order
    won = 0
    lost = 0
    for deal in deals:
        if deal.stage == DealStage.CLOSED_WON:
            won += 1
        elif deal.stage == DealStage.CLOSED_LOST:
            lost += 1
        else:
            active_count += 1
            active_values.append(deal.value)

    closed = won + lost
    win_rate = _round_half_up(100 * won / closed) if closed else 0

    return DashboardMetrics(
        total_contacts=total_contacts,
        active_deals=active_count,
        pipeline_value=math.fsum(active_values),
        win_rate=win_rate,
    )


def recent_deals(deals: Iterable[Deal], n: int) -> list[Deal]:
    """The n most recently updated deals, newest first, ties by id ascending."""
    if n <= 0:
        return []

    def _key(deal: Deal) -> tuple[float, int]:
        updated = deal.updated_at
        stamp = updated.timestamp() if isinstance(updated, datetime) else -math.inf
        return (-stamp, deal.id)

    return sorted(deals, key=_key)[:n]


def stage_summaries(deals: Iterable[Deal]) -> list[StageSummary]:
    """One summary per stage in pipeline order, empty stages included."""
    deals = list(deals)
    summaries = []
    for stage in PIPELINE_STAGES:
        in_stage = deals_by_stage(deals, stage)
        summaries.append(
            StageSummary(
                stage=stage,
                count=len(in_stage),
                value=math.fsum(d.value for d in in_stage),
                deals=in_stage,
            )
        )
    return summaries


def contact_name_for(contacts: Iterable[Contact], contact_id: int) -> str:
    """Resolve a deal's contact name; dangling references read as Unknown Contact."""
    for contact in contacts:
        if contact.id == contact_id:
            return contact.name
    return UNKNOWN_CONTACT


def filter_deals(
    deals: Iterable[Deal],
    contacts: Sequence[Contact],
    search: str = "",
    stage: DealStage | None = None,
) -> list[Deal]:
    """Case-insensitive search over deal title and the contact's name or company.

    An empty search matches everything. A deal whose contact no longer exists
    can still match on its title.
    """
    by_id = {c.id: c for c in contacts}
    needle = search.strip().lower()
    matched = []
    for deal in deals:
        if stage is not None and deal.stage != stage:
            continue
        if needle:
            contact = by_id.get(deal.contact_id)
            haystack = [deal.title]
            if contact is not None:
                haystack.append(contact.name)
                if contact.company:
                    haystack.append(contact.company)
            if not any(needle in text.lower() for text in haystack):
                continue
        matched.append(deal)
    return matched


# ── Store-backed Aggregator ─────────────────────────────────────────────────


class PipelineAggregator:
    """Loads deals and contacts on demand and derives pipeline views.

    Never writes to the store.

    Args:
        store: RecordStore to read deals and contacts from.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def _load_deals(self) -> list[Deal]:
        records = await self._store.query(RecordKind.DEALS, sort=[SortSpec(field="id")])
        return [Deal.model_validate(r) for r in records]

    async def dashboard(self) -> DashboardMetrics:
        deals = await self._load_deals()
        contacts = await self._store.query(RecordKind.CONTACTS)
        metrics = dashboard_metrics(deals, total_contacts=len(contacts))
        logger.debug(
            "pipeline.dashboard_computed",
            active_deals=metrics.active_deals,
            win_rate=metrics.win_rate,
        )
        return metrics

    async def board(self) -> PipelineBoard:
        deals = await self._load_deals()
        return PipelineBoard(
            stages=stage_summaries(deals),
            total_value=total_value(deals),
        )

    async def recent(self, n: int) -> list[Deal]:
        deals = await self._load_deals()
        return recent_deals(deals, n)
