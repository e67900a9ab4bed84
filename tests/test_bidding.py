from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import func, select

from auction_api import auctions, settlement
from auction_api.bids import current_highest, list_bids, place_bid
from auction_api.errors import (
    BudgetExceededError,
    InvalidBidError,
    NoActiveLotError,
    NotFoundError,
)
from auction_api.models import Bid

from .helpers import build_auction, build_player, build_team, open_live_lot


def _bid_count(db) -> int:
    return db.scalar(select(func.count()).select_from(Bid))


def test_first_bid_must_clear_base_price_plus_increment(db):
    lot = open_live_lot(db)

    with pytest.raises(InvalidBidError):
        place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 100_000)
    with pytest.raises(InvalidBidError):
        place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 149_999)

    bid = place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 150_000)
    assert bid.amount == 150_000
    assert current_highest(db, lot.auction.id, lot.player.id).id == bid.id


def test_increment_scenario(db):
    lot = open_live_lot(db)

    place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 150_000)
    with pytest.raises(InvalidBidError):
        place_bid(db, lot.auction.id, lot.player.id, lot.team_b.id, 180_000)
    place_bid(db, lot.auction.id, lot.player.id, lot.team_b.id, 200_000)

    highest = current_highest(db, lot.auction.id, lot.player.id)
    assert highest.team_id == lot.team_b.id
    assert highest.amount == 200_000
    assert _bid_count(db) == 2


def test_rejected_bid_leaves_ledger_unchanged(db):
    lot = open_live_lot(db)
    place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 150_000)

    with pytest.raises(InvalidBidError):
        place_bid(db, lot.auction.id, lot.player.id, lot.team_b.id, 150_000)

    assert _bid_count(db) == 1


def test_bid_above_remaining_budget(db):
    lot = open_live_lot(db)

    with pytest.raises(BudgetExceededError):
        place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 1_050_000)

    assert _bid_count(db) == 0
    db.refresh(lot.team_a)
    assert lot.team_a.remaining_budget == 1_000_000


def test_bids_do_not_commit_budget(db):
    lot = open_live_lot(db)
    place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 300_000)

    db.refresh(lot.team_a)
    db.refresh(lot.player)
    assert lot.team_a.remaining_budget == 1_000_000
    assert lot.player.current_price is None
    assert lot.player.team_id is None


def test_bid_on_player_without_open_lot(db):
    auction = build_auction(db)
    team = build_team(db, auction, "Falcons")
    first = build_player(db, auction, "Arjun Mehta")
    second = build_player(db, auction, "Kabir Rao")
    auctions.start_auction(db, auction.id)
    auctions.open_lot(db, auction.id, first.id)

    with pytest.raises(NoActiveLotError):
        place_bid(db, auction.id, second.id, team.id, 150_000)


def test_bid_after_lot_closed(db):
    lot = open_live_lot(db)
    settlement.mark_unsold(db, lot.auction.id, lot.player.id)

    with pytest.raises(NoActiveLotError):
        place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 150_000)


def test_bid_from_team_of_another_auction(db):
    lot = open_live_lot(db)
    other = build_auction(db, title="Winter Cup")
    outsider = build_team(db, other, "Outsiders")

    with pytest.raises(NotFoundError):
        place_bid(db, lot.auction.id, lot.player.id, outsider.id, 150_000)


def test_highest_tie_goes_to_first_bid(db):
    lot = open_live_lot(db)
    stamp = datetime(2026, 1, 1, 12, 0, 0)
    for team in (lot.team_a, lot.team_b):
        db.add(
            Bid(
                auction_id=lot.auction.id,
                player_id=lot.player.id,
                team_id=team.id,
                amount=250_000,
                lot_round=lot.player.lot_round,
                created_at=stamp,
            )
        )
    db.commit()

    assert current_highest(db, lot.auction.id, lot.player.id).team_id == lot.team_a.id


def test_reauctioned_player_starts_from_base_price(db):
    lot = open_live_lot(db)
    place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 300_000)
    settlement.mark_unsold(db, lot.auction.id, lot.player.id)
    settlement.reset_player(db, lot.player.id)

    auctions.open_lot(db, lot.auction.id, lot.player.id)
    assert current_highest(db, lot.auction.id, lot.player.id) is None
    bid = place_bid(db, lot.auction.id, lot.player.id, lot.team_b.id, 150_000)
    assert bid.lot_round == 2


def test_list_bids_newest_first(db):
    lot = open_live_lot(db)
    place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 150_000)
    place_bid(db, lot.auction.id, lot.player.id, lot.team_b.id, 200_000)
    place_bid(db, lot.auction.id, lot.player.id, lot.team_a.id, 250_000)

    amounts = [bid.amount for bid in list_bids(db, lot.player.id)]
    assert amounts == [250_000, 200_000, 150_000]
