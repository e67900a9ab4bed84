"""
Append-only bid ledger.

Bids are never updated or deleted. The current price of an open lot is a
read over the ledger, scoped to the player's current lot round so that a
player who is reset and auctioned again starts from the base price.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import BudgetExceededError, InvalidBidError, NoActiveLotError
from .lookups import get_auction_player, get_auction_team, get_player, lock_auction
from .models import AUCTION_LIVE, PLAYER_BIDDING, Auction, Bid, Category, Player
from .teams import ensure_budget

logger = logging.getLogger(__name__)


def current_highest(db: Session, auction_id: str, player_id: str) -> Bid | None:
    """
    Highest bid of the player's current lot round.

    Ties go to the earliest bid: the autoincrement id is the insertion order,
    which is stable where timestamps can collide.
    """
    player = get_auction_player(db, auction_id, player_id)
    return _highest_for_round(db, auction_id, player)


def _highest_for_round(db: Session, auction_id: str, player: Player) -> Bid | None:
    return db.scalars(
        select(Bid)
        .where(
            Bid.auction_id == auction_id,
            Bid.player_id == player.id,
            Bid.lot_round == player.lot_round,
        )
        .order_by(Bid.amount.desc(), Bid.id.asc())
        .limit(1)
    ).first()


def minimum_next_bid(player: Player, category: Category, highest: Bid | None) -> int:
    floor = highest.amount if highest else (player.base_price or 0)
    return floor + category.bid_increment


def lot_category(auction: Auction, player: Player) -> Category:
    category = auction.category_named(player.category)
    if category is None:
        # Categories can only change while the auction is upcoming, so an open
        # lot always resolves to one.
        raise NoActiveLotError(
            f"Player {player.id} has no category in auction {auction.id}"
        )
    return category


def place_bid(
    db: Session, auction_id: str, player_id: str, team_id: str, amount: int
) -> Bid:
    auction = lock_auction(db, auction_id)
    player = get_auction_player(db, auction_id, player_id)
    if (
        auction.status != AUCTION_LIVE
        or player.status != PLAYER_BIDDING
        or auction.current_lot_player_id != player.id
    ):
        logger.warning(f"Bid rejected: player {player.id} is not the open lot")
        raise NoActiveLotError(f"Player {player.name} is not currently up for bidding")

    team = get_auction_team(db, auction_id, team_id)
    category = lot_category(auction, player)
    highest = _highest_for_round(db, auction_id, player)
    minimum = minimum_next_bid(player, category, highest)
    if amount < minimum:
        logger.warning(
            f"Bid rejected: {team.name} offered {amount} for {player.name}, minimum is {minimum}"
        )
        raise InvalidBidError(f"Bid must be at least {minimum}")
    try:
        ensure_budget(team, amount)
    except BudgetExceededError:
        logger.warning(
            f"Bid rejected: {team.name} offered {amount} with {team.remaining_budget} left"
        )
        raise

    bid = Bid(
        auction_id=auction_id,
        player_id=player.id,
        team_id=team.id,
        amount=amount,
        lot_round=player.lot_round,
    )
    db.add(bid)
    db.commit()
    db.refresh(bid)
    logger.info(f"Bid accepted: {team.name} {amount} for {player.name}")
    return bid


def list_bids(db: Session, player_id: str) -> list[Bid]:
    get_player(db, player_id)
    return list(
        db.scalars(
            select(Bid)
            .where(Bid.player_id == player_id)
            .order_by(Bid.created_at.desc(), Bid.id.desc())
        ).all()
    )


def lot_bids(db: Session, auction_id: str, player: Player, limit: int) -> list[Bid]:
    return list(
        db.scalars(
            select(Bid)
            .where(
                Bid.auction_id == auction_id,
                Bid.player_id == player.id,
                Bid.lot_round == player.lot_round,
            )
            .order_by(Bid.id.desc())
            .limit(limit)
        ).all()
    )
