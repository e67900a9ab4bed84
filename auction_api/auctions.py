"""
Auction records and the auction state machine.

    upcoming --start--> live --complete--> completed

While live, at most one player is the open lot (``current_lot_player_id``).
Lots are opened here and closed by the settlement functions. Every transition
locks the auction row and is rejected, not overwritten, when illegal.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import config
from .bids import current_highest, lot_bids, lot_category, minimum_next_bid
from .errors import ConflictError, ImmutableStateError, ValidationError
from .lookups import get_auction, get_auction_player, lock_auction
from .models import (
    AUCTION_COMPLETED,
    AUCTION_LIVE,
    AUCTION_UPCOMING,
    PLAYER_BIDDING,
    PLAYER_SOLD,
    PLAYER_UNSOLD,
    PLAYER_YET_TO_AUCTION,
    Auction,
    Bid,
    Category,
    Highlight,
    Player,
    Team,
)
from .schemas import AuctionCreate, AuctionUpdate, CategoryIn, roster_floor

logger = logging.getLogger(__name__)


@dataclass
class AuctionState:
    auction: Auction
    current_player: Player | None = None
    current_highest: Bid | None = None
    next_minimum_bid: int | None = None
    bid_history: list[Bid] = field(default_factory=list)
    highlights: list[str] = field(default_factory=list)


@dataclass
class AuctionSummary:
    total_players: int
    approved_players: int
    sold_players: int
    unsold_players: int
    remaining_players: int
    total_teams: int
    total_value: int
    top_sale: Player | None


def _build_categories(categories: list[CategoryIn]) -> list[Category]:
    return [
        Category(
            id=str(uuid.uuid4()),
            position=position,
            name=item.name,
            description=item.description,
            color=item.color,
            min_amount=item.min_amount,
            max_amount=item.max_amount,
            bid_increment=item.bid_increment,
            min_players_per_team=item.min_players_per_team,
            max_players_per_team=item.max_players_per_team,
        )
        for position, item in enumerate(categories)
    ]


def _replace_categories(auction: Auction, categories: list[CategoryIn]) -> None:
    # Reuse rows by name: the unit of work inserts before it deletes, so a
    # fresh row with a kept name would hit the (auction_id, name) constraint.
    existing = {category.name: category for category in auction.categories}
    replacement = []
    for position, item in enumerate(categories):
        category = existing.get(item.name)
        if category is None:
            category = _build_categories([item])[0]
        category.position = position
        category.description = item.description
        category.color = item.color
        category.min_amount = item.min_amount
        category.max_amount = item.max_amount
        category.bid_increment = item.bid_increment
        category.min_players_per_team = item.min_players_per_team
        category.max_players_per_team = item.max_players_per_team
        replacement.append(category)
    auction.categories = replacement


def _reprice_players(db: Session, auction: Auction) -> None:
    players = db.scalars(select(Player).where(Player.auction_id == auction.id)).all()
    for player in players:
        category = auction.category_named(player.category)
        if category is None:
            player.category = None
            player.base_price = None
        else:
            player.base_price = category.min_amount


def record_highlight(db: Session, auction_id: str, message: str) -> None:
    db.add(Highlight(auction_id=auction_id, message=message))


def create_auction(db: Session, payload: AuctionCreate) -> Auction:
    auction = Auction(
        id=str(uuid.uuid4()),
        title=payload.title,
        date=payload.date,
        total_teams=payload.total_teams,
        max_bid_amount=payload.max_bid_amount,
        status=AUCTION_UPCOMING,
        rules=payload.rules,
        logo=payload.logo,
        banner=payload.banner,
        categories=_build_categories(payload.categories),
    )
    db.add(auction)
    db.commit()
    db.refresh(auction)
    logger.info(f"Auction {auction.title} created for {auction.date.isoformat()}")
    return auction


def update_auction(
    db: Session, auction_id: str, payload: AuctionUpdate, today: date | None = None
) -> Auction:
    auction = lock_auction(db, auction_id)
    today = today or date.today()
    if auction.date < today:
        raise ImmutableStateError("Cannot update auction after its date")
    if auction.status == AUCTION_COMPLETED:
        raise ImmutableStateError("Cannot update a completed auction")

    auction_teams = db.scalars(select(Team).where(Team.auction_id == auction.id)).all()
    if payload.total_teams is not None and payload.total_teams < len(auction_teams):
        raise ConflictError(
            f"Auction already has {len(auction_teams)} teams, cannot lower the limit "
            f"to {payload.total_teams}"
        )
    reshapes_pool = payload.categories is not None or payload.max_bid_amount is not None
    if reshapes_pool and auction.status != AUCTION_UPCOMING:
        raise ConflictError("Categories and budget are fixed once the auction is live")
    if reshapes_pool:
        floor = roster_floor(payload.categories or auction.categories)
        budget = payload.max_bid_amount or auction.max_bid_amount
        if floor > budget:
            raise ValidationError(
                f"Minimum rosters cost {floor}, more than the team budget of {budget}"
            )

    if payload.total_teams is not None:
        auction.total_teams = payload.total_teams
    if payload.categories is not None:
        _replace_categories(auction, payload.categories)
        _reprice_players(db, auction)
    if payload.max_bid_amount is not None:
        auction.max_bid_amount = payload.max_bid_amount
        # Nothing is sold before the auction goes live.
        for team in auction_teams:
            team.budget = payload.max_bid_amount
            team.remaining_budget = payload.max_bid_amount
    for name in ("title", "date", "rules", "logo", "banner"):
        value = getattr(payload, name)
        if value is not None:
            setattr(auction, name, value)

    db.commit()
    db.refresh(auction)
    logger.info(f"Auction {auction.id} updated")
    return auction


def list_auctions(db: Session, status: str | None = None) -> list[Auction]:
    query = select(Auction).order_by(Auction.created_at.desc())
    if status:
        query = query.where(Auction.status == status)
    return list(db.scalars(query).all())


def add_highlight(db: Session, auction_id: str, message: str) -> Auction:
    auction = lock_auction(db, auction_id)
    record_highlight(db, auction.id, message)
    db.commit()
    db.refresh(auction)
    return auction


def start_auction(db: Session, auction_id: str) -> Auction:
    auction = lock_auction(db, auction_id)
    if auction.status != AUCTION_UPCOMING:
        raise ConflictError(f"Auction is {auction.status}, only upcoming auctions can start")
    if not auction.categories:
        raise ConflictError("Auction needs at least one category before it can start")
    approved = db.scalar(
        select(func.count())
        .select_from(Player)
        .where(Player.auction_id == auction.id, Player.approved.is_(True))
    )
    if not approved:
        raise ConflictError("Auction needs at least one approved player before it can start")

    auction.status = AUCTION_LIVE
    auction.current_lot_player_id = None
    record_highlight(db, auction.id, "AUCTION STARTED")
    db.commit()
    db.refresh(auction)
    logger.info(f"Auction {auction.id} is live")
    return auction


def open_lot(db: Session, auction_id: str, player_id: str) -> Player:
    auction = lock_auction(db, auction_id)
    if auction.status != AUCTION_LIVE:
        raise ConflictError(f"Auction is {auction.status}, lots open only while live")
    if auction.current_lot_player_id is not None:
        raise ConflictError(
            f"Player {auction.current_lot_player_id} is already up for bidding"
        )
    player = get_auction_player(db, auction.id, player_id)
    if not player.approved:
        raise ConflictError(f"Player {player.name} is not approved")
    if player.status != PLAYER_YET_TO_AUCTION:
        raise ConflictError(f"Player {player.name} is {player.status}")
    if auction.category_named(player.category) is None:
        raise ConflictError(f"Player {player.name} has no category in this auction")

    player.status = PLAYER_BIDDING
    player.lot_round += 1
    auction.current_lot_player_id = player.id
    record_highlight(db, auction.id, f"NOW BIDDING: {player.name} ({player.category})")
    db.commit()
    db.refresh(player)
    logger.info(f"Lot opened for {player.name} at base price {player.base_price}")
    return player


def complete_auction(db: Session, auction_id: str, force: bool = False) -> Auction:
    auction = lock_auction(db, auction_id)
    if auction.status != AUCTION_LIVE:
        raise ConflictError(f"Auction is {auction.status}, only live auctions can complete")
    if auction.current_lot_player_id is not None:
        raise ConflictError("Close the open lot before completing the auction")
    remaining = db.scalar(
        select(func.count())
        .select_from(Player)
        .where(
            Player.auction_id == auction.id,
            Player.approved.is_(True),
            Player.status == PLAYER_YET_TO_AUCTION,
        )
    )
    if remaining and not force:
        raise ConflictError(f"{remaining} players are still waiting to be auctioned")

    auction.status = AUCTION_COMPLETED
    record_highlight(db, auction.id, "AUCTION COMPLETED")
    db.commit()
    db.refresh(auction)
    logger.info(f"Auction {auction.id} completed")
    return auction


def recent_highlights(db: Session, auction_id: str, limit: int) -> list[str]:
    rows = db.scalars(
        select(Highlight)
        .where(Highlight.auction_id == auction_id)
        .order_by(Highlight.id.desc())
        .limit(limit)
    ).all()
    return [row.message for row in rows]


def auction_state(db: Session, auction_id: str) -> AuctionState:
    auction = get_auction(db, auction_id)
    state = AuctionState(
        auction=auction,
        highlights=recent_highlights(db, auction.id, config.HIGHLIGHT_LIMIT),
    )
    if auction.current_lot_player_id is None:
        return state

    player = get_auction_player(db, auction.id, auction.current_lot_player_id)
    state.current_player = player
    state.current_highest = current_highest(db, auction.id, player.id)
    state.next_minimum_bid = minimum_next_bid(
        player, lot_category(auction, player), state.current_highest
    )
    state.bid_history = lot_bids(db, auction.id, player, config.BID_HISTORY_LIMIT)
    return state


def auction_summary(db: Session, auction_id: str) -> AuctionSummary:
    auction = get_auction(db, auction_id)
    players = db.scalars(select(Player).where(Player.auction_id == auction.id)).all()
    sold = [player for player in players if player.status == PLAYER_SOLD]
    team_count = db.scalar(
        select(func.count()).select_from(Team).where(Team.auction_id == auction.id)
    )
    return AuctionSummary(
        total_players=len(players),
        approved_players=sum(1 for player in players if player.approved),
        sold_players=len(sold),
        unsold_players=sum(1 for player in players if player.status == PLAYER_UNSOLD),
        remaining_players=sum(
            1
            for player in players
            if player.approved and player.status == PLAYER_YET_TO_AUCTION
        ),
        total_teams=team_count,
        total_value=sum(player.current_price or 0 for player in sold),
        top_sale=max(sold, key=lambda player: player.current_price or 0, default=None),
    )
