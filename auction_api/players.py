from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import ConflictError, ValidationError
from .lookups import get_player, lock_auctions
from .models import (
    PLAYER_BIDDING,
    PLAYER_SOLD,
    PLAYER_YET_TO_AUCTION,
    Auction,
    Player,
)
from .schemas import PlayerRegister, PlayerUpdate

logger = logging.getLogger(__name__)


def register_player(
    db: Session, payload: PlayerRegister, payment_proof_ref: str | None = None
) -> Player:
    """Self-registration. Players stay unapproved until an operator approves them."""
    player = Player(
        id=str(uuid.uuid4()),
        name=payload.name,
        sport=payload.sport,
        category=payload.category,
        experience=payload.experience,
        achievements=payload.achievements,
        contact=payload.contact,
        email=payload.email,
        payment_screenshot=payment_proof_ref or payload.payment_screenshot,
        status=PLAYER_YET_TO_AUCTION,
        approved=False,
    )
    db.add(player)
    db.commit()
    db.refresh(player)
    logger.info(f"Player {player.name} registered")
    return player


def _apply_category(auction: Auction, player: Player, name: str) -> None:
    category = auction.category_named(name)
    if category is None:
        raise ValidationError(f"Invalid category {name} for auction {auction.title}")
    player.category = category.name
    player.base_price = category.min_amount


def _ensure_reassignable(player: Player, auction_id: str) -> None:
    if (
        player.auction_id
        and player.auction_id != auction_id
        and player.status != PLAYER_YET_TO_AUCTION
    ):
        raise ConflictError(f"Player {player.name} is {player.status} in another auction")


def _lock_for_assignment(db: Session, player_id: str, auction_id: str) -> tuple[Auction, Player]:
    """
    Lock the target auction and the auction the player currently belongs to.

    A player leaving auction A must not race a lot being opened for it in A,
    so both rows are held before the player's status is read.
    """
    player = get_player(db, player_id)
    locked = lock_auctions(db, auction_id, player.auction_id)
    db.refresh(player)
    if player.auction_id and player.auction_id not in locked:
        raise ConflictError(f"Player {player.name} was moved to another auction, retry")
    _ensure_reassignable(player, auction_id)
    return locked[auction_id], player


def approve_player(db: Session, player_id: str, auction_id: str) -> Player:
    auction, player = _lock_for_assignment(db, player_id, auction_id)
    if auction.category_named(player.category):
        _apply_category(auction, player, player.category)
    else:
        # Self-registered categories that the auction does not run are dropped;
        # the player is ineligible for a lot until one is set.
        player.category = None
        player.base_price = None
    player.auction_id = auction.id
    player.approved = True
    db.commit()
    db.refresh(player)
    logger.info(f"Player {player.name} approved for auction {auction.id}")
    return player


def set_player_category(db: Session, player_id: str, category: str, auction_id: str) -> Player:
    auction, player = _lock_for_assignment(db, player_id, auction_id)
    if player.status in (PLAYER_BIDDING, PLAYER_SOLD):
        raise ConflictError(f"Cannot change the category of a {player.status} player")
    _apply_category(auction, player, category)
    player.auction_id = auction.id
    db.commit()
    db.refresh(player)
    logger.info(f"Player {player.name} set to {player.category} at {player.base_price}")
    return player


def update_player(db: Session, player_id: str, payload: PlayerUpdate) -> Player:
    player = get_player(db, player_id)
    for field in ("name", "sport", "experience", "achievements", "contact", "email"):
        value = getattr(payload, field)
        if value is not None:
            setattr(player, field, value)
    db.commit()
    db.refresh(player)
    return player


def list_players(
    db: Session,
    auction_id: str | None = None,
    approved: bool | None = None,
    status: str | None = None,
    category: str | None = None,
    sport: str | None = None,
) -> list[Player]:
    query = select(Player).order_by(Player.created_at, Player.name)
    if auction_id:
        query = query.where(Player.auction_id == auction_id)
    if approved is not None:
        query = query.where(Player.approved.is_(approved))
    if status:
        query = query.where(Player.status == status)
    if category:
        query = query.where(Player.category == category)
    if sport:
        query = query.where(Player.sport == sport)
    return list(db.scalars(query).all())
