"""Tests for auction liveness evaluation."""

from datetime import date, datetime, time

import pytest

from procubid.models.enums import AuctionStatus, CalculatedStatus
from procubid.services.liveness import auction_window, evaluate

from conftest import COLOMBO, colombo, make_auction


class TestAuctionWindow:
    """Window bounds built from the wall-clock schedule."""

    def test_window_is_start_plus_duration_in_civil_time(self):
        start, end = auction_window(make_auction(), COLOMBO)

        assert start == colombo(2026, 3, 10, 10, 0)
        assert end == colombo(2026, 3, 10, 10, 30)
        assert start.utcoffset().total_seconds() == 5.5 * 3600

    @pytest.mark.parametrize(
        "overrides",
        [
            {"auction_date": None},
            {"start_time": None},
            {"duration_minutes": None},
            {"duration_minutes": -5},
            {"auction_date": date(9999, 12, 31), "start_time": time(23, 0), "duration_minutes": 120},
            {"duration_minutes": 10**12},
        ],
    )
    def test_unusable_schedule_has_no_window(self, overrides):
        assert auction_window(make_auction(**overrides), COLOMBO) is None


class TestEvaluate:
    """Calculated status from persisted status and the clock."""

    @pytest.mark.parametrize(
        "now, expected",
        [
            (colombo(2026, 3, 10, 9, 59, 59), CalculatedStatus.APPROVED),
            (colombo(2026, 3, 10, 10, 0), CalculatedStatus.LIVE),
            (colombo(2026, 3, 10, 10, 15), CalculatedStatus.LIVE),
            (colombo(2026, 3, 10, 10, 30), CalculatedStatus.LIVE),
            (colombo(2026, 3, 10, 10, 30, 1), CalculatedStatus.ENDED),
        ],
    )
    def test_approved_auction_follows_the_clock(self, now, expected):
        liveness = evaluate(make_auction(), now, COLOMBO)

        assert liveness.calculated_status is expected
        assert liveness.is_live == (expected is CalculatedStatus.LIVE)

    def test_live_auction_ends_at_end_instant(self):
        auction = make_auction(status=AuctionStatus.LIVE)

        assert evaluate(auction, colombo(2026, 3, 10, 10, 29, 59), COLOMBO).is_live
        ended = evaluate(auction, colombo(2026, 3, 10, 10, 30), COLOMBO)
        assert ended.calculated_status is CalculatedStatus.ENDED

    def test_live_auction_before_start_stays_live(self):
        auction = make_auction(status=AuctionStatus.LIVE)

        liveness = evaluate(auction, colombo(2026, 3, 10, 9, 0), COLOMBO)

        assert liveness.calculated_status is CalculatedStatus.LIVE

    @pytest.mark.parametrize(
        "status",
        [
            AuctionStatus.PENDING,
            AuctionStatus.REJECTED,
            AuctionStatus.CANCELLED,
            AuctionStatus.ENDED,
        ],
    )
    def test_other_statuses_never_move_on_the_clock(self, status):
        auction = make_auction(status=status)

        liveness = evaluate(auction, colombo(2026, 3, 10, 10, 10), COLOMBO)

        assert liveness.calculated_status.value == status.value
        assert not liveness.is_live

    def test_invalid_schedule_is_error(self):
        auction = make_auction(start_time=None)

        liveness = evaluate(auction, colombo(2026, 3, 10, 10, 10), COLOMBO)

        assert liveness.calculated_status is CalculatedStatus.ERROR
        assert liveness.starts_at is None
        assert not liveness.is_live

    def test_schedule_past_the_calendar_is_error(self):
        auction = make_auction(auction_date=date(9999, 12, 31), start_time=time(23, 0), duration_minutes=120)

        liveness = evaluate(auction, colombo(2026, 3, 10, 10, 10), COLOMBO)

        assert liveness.calculated_status is CalculatedStatus.ERROR

    def test_naive_now_is_read_in_civil_time(self):
        auction = make_auction(start_time=time(10, 0))

        liveness = evaluate(auction, datetime(2026, 3, 10, 10, 5), COLOMBO)

        assert liveness.is_live

    def test_evaluation_is_deterministic(self):
        auction = make_auction()
        now = colombo(2026, 3, 10, 10, 5)

        assert evaluate(auction, now, COLOMBO) == evaluate(auction, now, COLOMBO)

    def test_countdowns(self):
        auction = make_auction()
        before = evaluate(auction, colombo(2026, 3, 10, 9, 58), COLOMBO)
        during = evaluate(auction, colombo(2026, 3, 10, 10, 20), COLOMBO)

        assert before.seconds_until_start(colombo(2026, 3, 10, 9, 58)) == 120
        assert before.seconds_remaining(colombo(2026, 3, 10, 9, 58)) is None
        assert during.seconds_until_start(colombo(2026, 3, 10, 10, 20)) is None
        assert during.seconds_remaining(colombo(2026, 3, 10, 10, 20)) == 600
