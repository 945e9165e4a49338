"""Tests for pipeline aggregation -- dashboard metrics, stage summaries, search."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from src.crm.contacts.schemas import Contact
from src.crm.deals.pipeline import (
    UNKNOWN_CONTACT,
    PipelineAggregator,
    contact_name_for,
    dashboard_metrics,
    deals_by_stage,
    filter_deals,
    recent_deals,
    stage_summaries,
    stage_value,
    total_value,
)
from src.crm.deals.schemas import Deal, DealStage, PIPELINE_STAGES
from src.crm.records.store import RecordKind

BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_deal(deal_id: int, value: float, stage: DealStage, **overrides) -> Deal:
    """Create a Deal with sensible defaults."""
    defaults = {
        "id": deal_id,
        "title": f"Deal {deal_id}",
        "contact_id": 1,
        "value": value,
        "stage": stage,
        "probability": stage.default_probability,
        "expected_close_date": BASE_TIME,
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    defaults.update(overrides)
    return Deal(**defaults)


def _make_contact(contact_id: int, name: str, company: str | None = None) -> Contact:
    return Contact(
        id=contact_id,
        name=name,
        email=f"{name.split()[0].lower()}@example.com",
        company=company,
    )


# ── Dashboard metrics ───────────────────────────────────────────────────────


class TestDashboardMetrics:
    def test_active_value_and_win_rate(self):
        deals = [
            _make_deal(1, 1000, DealStage.LEAD),
            _make_deal(2, 2000, DealStage.QUALIFIED),
            _make_deal(3, 3000, DealStage.CLOSED_WON),
        ]

        metrics = dashboard_metrics(deals, total_contacts=4)

        assert metrics.total_contacts == 4
        assert metrics.active_deals == 2
        assert metrics.pipeline_value == 3000
        assert metrics.win_rate == 100

    def test_win_rate_zero_when_nothing_closed(self):
        metrics = dashboard_metrics([_make_deal(1, 500, DealStage.PROPOSAL)])
        assert metrics.win_rate == 0

    def test_empty_pipeline(self):
        metrics = dashboard_metrics([])
        assert metrics.active_deals == 0
        assert metrics.pipeline_value == 0
        assert metrics.win_rate == 0

    @pytest.mark.parametrize(
        "won, lost, expected",
        [(1, 1, 50), (2, 1, 67), (1, 2, 33), (1, 7, 13), (0, 3, 0)],
    )
    def test_win_rate_rounds_half_up(self, won, lost, expected):
        deals = [_make_deal(i, 100, DealStage.CLOSED_WON) for i in range(won)]
        deals += [_make_deal(100 + i, 100, DealStage.CLOSED_LOST) for i in range(lost)]
        assert dashboard_metrics(deals).win_rate == expected

    def test_closed_deals_excluded_from_pipeline_value(self):
        deals = [
            _make_deal(1, 1000, DealStage.CLOSED_LOST),
            _make_deal(2, 250, DealStage.PROPOSAL),
        ]
        assert dashboard_metrics(deals).pipeline_value == 250

    def test_metrics_do_not_depend_on_order(self):
        deals = [
            _make_deal(1, 0.1, DealStage.LEAD),
            _make_deal(2, 0.2, DealStage.QUALIFIED),
            _make_deal(3, 0.3, DealStage.PROPOSAL),
            _make_deal(4, 1e16, DealStage.LEAD),
            _make_deal(5, 10, DealStage.CLOSED_WON),
        ]
        results = {
            dashboard_metrics(list(p)).model_dump_json()
            for p in itertools.permutations(deals)
        }
        assert len(results) == 1


# ── Stage aggregation ───────────────────────────────────────────────────────


class TestStageAggregation:
    def test_stage_value_and_empty_stage(self):
        deals = [
            _make_deal(1, 100, DealStage.LEAD),
            _make_deal(2, 250.5, DealStage.LEAD),
            _make_deal(3, 999, DealStage.PROPOSAL),
        ]
        assert stage_value(deals, DealStage.LEAD) == 350.5
        assert stage_value(deals, DealStage.QUALIFIED) == 0
        assert [d.id for d in deals_by_stage(deals, DealStage.LEAD)] == [1, 2]

    def test_total_value(self):
        deals = [
            _make_deal(1, 100, DealStage.LEAD),
            _make_deal(2, 900, DealStage.CLOSED_WON),
        ]
        assert total_value(deals) == 1000
        assert total_value(deals, DealStage.CLOSED_WON) == 900

    def test_stage_summaries_cover_every_stage_in_order(self):
        deals = [
            _make_deal(1, 100, DealStage.PROPOSAL),
            _make_deal(2, 200, DealStage.PROPOSAL),
        ]
        summaries = stage_summaries(deals)

        assert [s.stage for s in summaries] == PIPELINE_STAGES
        proposal = summaries[PIPELINE_STAGES.index(DealStage.PROPOSAL)]
        assert proposal.count == 2
        assert proposal.value == 300
        assert all(s.count == 0 for s in summaries if s.stage != DealStage.PROPOSAL)


# ── Recent deals ────────────────────────────────────────────────────────────


class TestRecentDeals:
    def test_newest_first_limited(self):
        deals = [
            _make_deal(i, 100, DealStage.LEAD, updated_at=BASE_TIME + timedelta(minutes=i))
            for i in range(1, 8)
        ]
        assert [d.id for d in recent_deals(deals, 5)] == [7, 6, 5, 4, 3]

    def test_ties_break_by_id(self):
        deals = [_make_deal(i, 100, DealStage.LEAD) for i in (3, 1, 2)]
        assert [d.id for d in recent_deals(deals, 3)] == [1, 2, 3]

    def test_non_positive_n_returns_empty(self):
        deals = [_make_deal(1, 100, DealStage.LEAD)]
        assert recent_deals(deals, 0) == []
        assert recent_deals(deals, -1) == []


# ── Contact joins and search ────────────────────────────────────────────────


class TestSearch:
    def test_contact_name_for_dangling_reference(self):
        contacts = [_make_contact(1, "Alice Johnson")]
        assert contact_name_for(contacts, 1) == "Alice Johnson"
        assert contact_name_for(contacts, 2) == UNKNOWN_CONTACT

    def test_filter_by_title_contact_and_company(self):
        contacts = [
            _make_contact(1, "Alice Johnson", "Acme Corp"),
            _make_contact(2, "Bob Smith", "Globex"),
        ]
        deals = [
            _make_deal(1, 100, DealStage.LEAD, title="Renewal", contact_id=1),
            _make_deal(2, 100, DealStage.QUALIFIED, title="Upsell", contact_id=2),
            _make_deal(3, 100, DealStage.LEAD, title="Globex pilot", contact_id=9),
        ]

        assert [d.id for d in filter_deals(deals, contacts, search="acme")] == [1]
        assert [d.id for d in filter_deals(deals, contacts, search="BOB")] == [2]
        assert [d.id for d in filter_deals(deals, contacts, search="globex")] == [2, 3]
        assert [d.id for d in filter_deals(deals, contacts)] == [1, 2, 3]

    def test_filter_by_stage(self):
        deals = [
            _make_deal(1, 100, DealStage.LEAD),
            _make_deal(2, 100, DealStage.QUALIFIED),
        ]
        matched = filter_deals(deals, [], stage=DealStage.QUALIFIED)
        assert [d.id for d in matched] == [2]


# ── Store-backed aggregator ─────────────────────────────────────────────────


class TestPipelineAggregator:
    @pytest.mark.asyncio
    async def test_dashboard_and_board_from_store(self, store):
        await store.insert(RecordKind.CONTACTS, {"name": "Alice", "email": "a@acme.com"})
        for value, stage in [
            (1000, DealStage.LEAD),
            (2000, DealStage.QUALIFIED),
            (3000, DealStage.CLOSED_WON),
        ]:
            await store.insert(
                RecordKind.DEALS,
                {
                    "title": f"Deal {value}",
                    "contact_id": 1,
                    "value": value,
                    "stage": stage,
                    "probability": stage.default_probability,
                    "expected_close_date": BASE_TIME,
                },
            )

        aggregator = PipelineAggregator(store)
        metrics = await aggregator.dashboard()
        board = await aggregator.board()
        recent = await aggregator.recent(2)

        assert metrics.total_contacts == 1
        assert metrics.active_deals == 2
        assert metrics.pipeline_value == 3000
        assert metrics.win_rate == 100
        assert board.total_value == 6000
        assert [s.count for s in board.stages] == [1, 1, 0, 1, 0]
        assert len(recent) == 2
