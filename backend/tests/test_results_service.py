"""Tests for the post-auction results workflow."""

import asyncio
import uuid
from decimal import Decimal

import pytest

from procubid.core.errors import ErrorKind
from procubid.models.enums import AuctionStatus, ResultStatus
from procubid.services.results_service import ResultsService

from conftest import colombo, make_auction, make_bidder


@pytest.fixture
def ended_auction(store):
    return store.add_auction(make_auction(status=AuctionStatus.ENDED))


@pytest.fixture
def bidders(store, ended_auction):
    """Seven bidders with best bids 100, 200, ... 700."""
    created = []
    for i in range(1, 8):
        bidder = store.add_bidder(make_bidder(f"BID{i:04d}"), invite_to=ended_auction)
        store.add_bid(ended_auction, bidder, f"{i * 100}", colombo(2026, 3, 10, 10, i))
        created.append(bidder)
    return created


@pytest.fixture
def service(store, clock, email_service, gateway):
    clock.set(colombo(2026, 3, 10, 11, 0))
    return ResultsService(store, clock, email_service=email_service, gateway=gateway, shortlist_size=5)


class TestShortlist:
    @pytest.mark.asyncio
    async def test_top_bidders_are_shortlisted(self, store, service, ended_auction, bidders, email_service):
        outcome = await service.shortlist(ended_auction.id)

        assert outcome.ok
        assert [s["bidder_id"] for s in outcome.value["short_listed"]] == [b.id for b in bidders[:5]]
        assert outcome.value["not_short_listed"] == [b.id for b in bidders[5:]]
        assert store.result_status(ended_auction, bidders[0]) is ResultStatus.SHORT_LISTED
        assert store.result_status(ended_auction, bidders[6]) is ResultStatus.NOT_SHORT_LISTED
        assert email_service.send_shortlist.await_count == 5
        first_call = email_service.send_shortlist.await_args_list[0]
        assert first_call.args[2] == Decimal("100")

    @pytest.mark.asyncio
    async def test_disqualified_bidders_are_left_out(self, store, service, ended_auction, bidders):
        await store.upsert_result(ended_auction.id, bidders[0].id, ResultStatus.DISQUALIFIED, reason="Late docs")

        outcome = await service.shortlist("AUC1001")

        shortlisted = [s["bidder_id"] for s in outcome.value["short_listed"]]
        assert bidders[0].id not in shortlisted
        assert shortlisted == [b.id for b in bidders[1:6]]
        assert store.result_status(ended_auction, bidders[0]) is ResultStatus.DISQUALIFIED

    @pytest.mark.asyncio
    async def test_ranks_count_eligible_bidders_only(self, store, service, ended_auction, bidders):
        await store.upsert_result(ended_auction.id, bidders[0].id, ResultStatus.DISQUALIFIED, reason="Late docs")

        outcome = await service.shortlist(ended_auction.id)

        short_listed = outcome.value["short_listed"]
        assert [s["rank"] for s in short_listed] == [1, 2, 3, 4, 5]
        assert short_listed[0]["bidder_id"] == bidders[1].id
        assert short_listed[0]["amount"] == Decimal("200")

    @pytest.mark.asyncio
    async def test_shortlisting_twice_is_refused(self, service, ended_auction, bidders):
        await service.shortlist(ended_auction.id)

        outcome = await service.shortlist(ended_auction.id)

        assert outcome.error.code == "ALREADY_SHORTLISTED"

    @pytest.mark.asyncio
    async def test_no_bids(self, service, ended_auction):
        outcome = await service.shortlist(ended_auction.id)

        assert outcome.error.kind is ErrorKind.PRECONDITION
        assert outcome.error.code == "NO_BIDS"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, code",
        [
            (AuctionStatus.CANCELLED, "AUCTION_CANCELLED"),
            (AuctionStatus.REJECTED, "AUCTION_REJECTED"),
            (AuctionStatus.PENDING, "AUCTION_NOT_APPROVED"),
        ],
    )
    async def test_refused_statuses(self, store, service, status, code):
        auction = store.add_auction(make_auction(status=status))

        outcome = await service.shortlist(auction.id)

        assert outcome.error.code == code


class TestAward:
    @pytest.mark.asyncio
    async def test_award_demotes_other_shortlisted(self, store, service, ended_auction, bidders, email_service):
        await service.shortlist(ended_auction.id)

        outcome = await service.award(ended_auction.id, bidders[1].id)

        assert outcome.ok
        assert outcome.value["not_awarded_count"] == 4
        statuses = [store.result_status(ended_auction, b) for b in bidders]
        assert statuses.count(ResultStatus.AWARDED) == 1
        assert statuses[1] is ResultStatus.AWARDED
        assert statuses[0] is ResultStatus.NOT_AWARDED
        assert statuses[6] is ResultStatus.NOT_SHORT_LISTED
        email_service.send_award.assert_awaited_once()
        assert email_service.send_award.await_args.args[2] == Decimal("200")

    @pytest.mark.asyncio
    async def test_only_shortlisted_can_be_awarded(self, service, ended_auction, bidders):
        await service.shortlist(ended_auction.id)

        outcome = await service.award(ended_auction.id, bidders[6].id)

        assert outcome.error.code == "NOT_SHORTLISTED"
        assert outcome.error.details["current_status"] == "not-short-listed"

    @pytest.mark.asyncio
    async def test_concurrent_awards_leave_one_winner(self, store, service, ended_auction, bidders):
        await service.shortlist(ended_auction.id)

        first, second = await asyncio.gather(
            service.award(ended_auction.id, bidders[0].id),
            service.award(ended_auction.id, bidders[1].id),
        )

        assert sum(o.ok for o in (first, second)) == 1
        statuses = [store.result_status(ended_auction, b) for b in bidders]
        assert statuses.count(ResultStatus.AWARDED) == 1

    @pytest.mark.asyncio
    async def test_award_on_cancelled_auction(self, store, service):
        auction = store.add_auction(make_auction(status=AuctionStatus.CANCELLED))

        outcome = await service.award(auction.id, store.add_bidder(make_bidder()).id)

        assert outcome.error.code == "AUCTION_CANCELLED"

    @pytest.mark.asyncio
    async def test_not_award_leaves_peers_untouched(self, store, service, ended_auction, bidders):
        await service.shortlist(ended_auction.id)

        outcome = await service.not_award(ended_auction.id, bidders[0].id)

        assert outcome.ok
        assert store.result_status(ended_auction, bidders[0]) is ResultStatus.NOT_AWARDED
        assert store.result_status(ended_auction, bidders[1]) is ResultStatus.SHORT_LISTED


class TestDisqualify:
    @pytest.mark.asyncio
    async def test_disqualify_with_reason(self, store, service, ended_auction, bidders, email_service):
        outcome = await service.disqualify(ended_auction.id, bidders[2].id, "  Missing tax certificate ")

        assert outcome.value["reason"] == "Missing tax certificate"
        row = store.results[(ended_auction.id, bidders[2].id)]
        assert row.status is ResultStatus.DISQUALIFIED
        assert row.disqualification_reason == "Missing tax certificate"
        email_service.send_disqualification.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_blank_reason_is_refused(self, service, ended_auction, bidders):
        outcome = await service.disqualify(ended_auction.id, bidders[0].id, "   ")

        assert outcome.error.kind is ErrorKind.VALIDATION
        assert outcome.error.code == "REASON_REQUIRED"

    @pytest.mark.asyncio
    async def test_awarded_bidder_cannot_be_disqualified(self, service, ended_auction, bidders):
        await service.shortlist(ended_auction.id)
        await service.award(ended_auction.id, bidders[0].id)

        outcome = await service.disqualify(ended_auction.id, bidders[0].id, "Too late")

        assert outcome.error.code == "INVALID_RESULT_TRANSITION"

    @pytest.mark.asyncio
    async def test_unknown_bidder(self, service, ended_auction):
        outcome = await service.disqualify(ended_auction.id, uuid.uuid4(), "Fraud")

        assert outcome.error.code == "BIDDER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_non_participant_is_refused(self, store, service, ended_auction, bidders, email_service):
        outsider = store.add_bidder(make_bidder("BID0099"))

        outcome = await service.disqualify(ended_auction.id, outsider.id, "Fraud")

        assert outcome.error.kind is ErrorKind.PRECONDITION
        assert outcome.error.code == "NOT_A_PARTICIPANT"
        assert store.result_status(ended_auction, outsider) is None
        email_service.send_disqualification.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invited_bidder_without_bids_can_be_disqualified(self, store, service, ended_auction, bidders):
        invited = store.add_bidder(make_bidder("BID0099"), invite_to=ended_auction)

        outcome = await service.disqualify(ended_auction.id, invited.id, "Failed vetting")

        assert outcome.ok
        assert store.result_status(ended_auction, invited) is ResultStatus.DISQUALIFIED

    @pytest.mark.asyncio
    async def test_uninvited_bidder_who_bid_can_be_disqualified(self, store, service, ended_auction, bidders):
        store.invitations.discard((ended_auction.id, bidders[3].id))

        outcome = await service.disqualify(ended_auction.id, bidders[3].id, "Invitation withdrawn")

        assert outcome.ok


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_writes_a_row_per_bidder(self, store, service, ended_auction, bidders, email_service, gateway):
        outcome = await service.cancel(ended_auction.id, "Budget withdrawn", cancelled_by=bidders[0].id)

        assert outcome.ok
        assert outcome.value["previous_status"] == "ended"
        assert len(outcome.value["cancelled_bidders"]) == 7
        auction = store.auctions[ended_auction.id]
        assert auction.status is AuctionStatus.CANCELLED
        assert auction.cancellation_reason == "Budget withdrawn"
        assert all(store.result_status(ended_auction, b) is ResultStatus.CANCEL for b in bidders)
        assert store.results[(ended_auction.id, bidders[0].id)].cancel_reason == "Budget withdrawn"
        assert email_service.send_cancellation.await_count == 7
        gateway.broadcast_status_change.assert_awaited_once()
        assert gateway.broadcast_status_change.await_args.args[1] == "cancelled"

    @pytest.mark.asyncio
    async def test_cancel_pending_auction_without_bids(self, store, service):
        auction = store.add_auction(make_auction(status=AuctionStatus.PENDING))

        outcome = await service.cancel(auction.id, "Duplicate request")

        assert outcome.ok
        assert outcome.value["cancelled_bidders"] == []
        assert store.results == {}
        assert store.auctions[auction.id].status is AuctionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_after_award_is_refused(self, store, service, ended_auction, bidders):
        await service.shortlist(ended_auction.id)
        await service.award(ended_auction.id, bidders[0].id)

        outcome = await service.cancel(ended_auction.id, "Changed our mind")

        assert outcome.error.code == "ALREADY_AWARDED"
        assert store.auctions[ended_auction.id].status is AuctionStatus.ENDED

    @pytest.mark.asyncio
    async def test_cancel_twice(self, service, ended_auction, bidders):
        await service.cancel(ended_auction.id, "First")

        outcome = await service.cancel(ended_auction.id, "Second")

        assert outcome.error.code == "ALREADY_CANCELLED"

    @pytest.mark.asyncio
    async def test_blank_reason(self, store, service, ended_auction):
        outcome = await service.cancel(ended_auction.id, "")

        assert outcome.error.code == "REASON_REQUIRED"
        assert store.auctions[ended_auction.id].status is AuctionStatus.ENDED

    @pytest.mark.asyncio
    async def test_failed_write_rolls_back(self, store, service, ended_auction, bidders, gateway):
        store.fail_on.add("upsert_result")

        outcome = await service.cancel(ended_auction.id, "Budget withdrawn")

        assert outcome.error.kind is ErrorKind.STORE
        assert store.auctions[ended_auction.id].status is AuctionStatus.ENDED
        gateway.broadcast_status_change.assert_not_awaited()


class TestGetResults:
    @pytest.mark.asyncio
    async def test_rows_ordered_by_rank(self, service, ended_auction, bidders):
        await service.shortlist(ended_auction.id)

        outcome = await service.get_results("AUC1001")

        rows = outcome.value["results"]
        assert [r["rank"] for r in rows] == [1, 2, 3, 4, 5, 6, 7]
        assert rows[0]["bidder_code"] == "BID0001"
        assert rows[0]["best_amount"] == Decimal("100")
        assert rows[0]["status"] == "short-listed"
        assert outcome.value["currency"] == "LKR"
