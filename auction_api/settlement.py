"""
Settlement of lots: sold, unsold, and the administrative reset.

A sale is one transaction: the player, the winning team's budget and roster,
and the auction's lot pointer change together or not at all. Budget and
roster bounds are re-checked here even though bids were checked when placed,
because other sales may have spent the team's budget since.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .auctions import record_highlight
from .bids import current_highest
from .errors import ConflictError, SettlementConflictError
from .lookups import get_auction_player, get_auction_team, get_player, lock_auction
from .models import (
    AUCTION_COMPLETED,
    AUCTION_LIVE,
    PLAYER_BIDDING,
    PLAYER_SOLD,
    PLAYER_UNSOLD,
    PLAYER_YET_TO_AUCTION,
    Auction,
    Player,
)
from .teams import credit, debit, ensure_budget, ensure_roster_room

logger = logging.getLogger(__name__)


def _open_lot_player(db: Session, auction: Auction, player_id: str) -> Player:
    player = get_auction_player(db, auction.id, player_id)
    if (
        auction.status != AUCTION_LIVE
        or auction.current_lot_player_id != player.id
        or player.status != PLAYER_BIDDING
    ):
        logger.warning(f"Settlement rejected: lot for player {player.id} is not open")
        raise SettlementConflictError(f"Lot for {player.name} is not open")
    return player


def sell(db: Session, auction_id: str, player_id: str, team_id: str) -> Player:
    auction = lock_auction(db, auction_id)
    player = _open_lot_player(db, auction, player_id)
    team = get_auction_team(db, auction.id, team_id)

    highest = current_highest(db, auction.id, player.id)
    if highest is not None:
        if highest.team_id != team.id:
            raise SettlementConflictError(
                f"{team.name} is not the highest bidder for {player.name}"
            )
        amount = highest.amount
    else:
        amount = player.base_price or 0

    ensure_budget(team, amount)
    ensure_roster_room(auction, team, player, amount)

    debit(team, player, amount)
    player.status = PLAYER_SOLD
    player.current_price = amount
    auction.current_lot_player_id = None
    record_highlight(db, auction.id, f"SOLD {player.name} to {team.name} for {amount}")
    db.commit()
    db.refresh(player)
    logger.info(f"Sold {player.name} to {team.name} for {amount}")
    return player


def mark_unsold(db: Session, auction_id: str, player_id: str) -> Player:
    auction = lock_auction(db, auction_id)
    player = _open_lot_player(db, auction, player_id)

    player.status = PLAYER_UNSOLD
    auction.current_lot_player_id = None
    record_highlight(db, auction.id, f"UNSOLD {player.name}")
    db.commit()
    db.refresh(player)
    logger.info(f"{player.name} went unsold")
    return player


def reset_player(db: Session, player_id: str) -> Player:
    """
    Put a player back in the pool as yet-to-auction.

    A sold player's price goes back to the team and the player leaves the
    roster. Players on an open lot must be settled first.
    """
    player = get_player(db, player_id)
    auction = None
    if player.auction_id:
        auction = lock_auction(db, player.auction_id)
        db.refresh(player)
    if player.status == PLAYER_BIDDING:
        raise ConflictError(f"{player.name} is up for bidding, mark the lot unsold first")
    if auction is not None and auction.status == AUCTION_COMPLETED:
        raise ConflictError("Players of a completed auction cannot be reset")

    if player.status == PLAYER_SOLD and player.team is not None:
        team = player.team
        credit(team, player)
        logger.info(f"Returned {player.current_price} to {team.name} for {player.name}")
    player.status = PLAYER_YET_TO_AUCTION
    player.current_price = None
    player.team = None
    if auction is not None:
        record_highlight(db, auction.id, f"RESET {player.name}")
    db.commit()
    db.refresh(player)
    logger.info(f"{player.name} reset to {PLAYER_YET_TO_AUCTION}")
    return player
