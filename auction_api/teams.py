"""
Teams and the roster/budget ledger.

A team's budget is fixed when it is created. ``remaining_budget`` only moves
through ``debit`` (a sale) and ``credit`` (an administrative reset of a sold
player), so ``remaining_budget == budget - sum(sold prices)`` holds.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .errors import BudgetExceededError, ConflictError, RosterConstraintError
from .lookups import get_team, lock_auction
from .models import PLAYER_SOLD, Auction, Player, Team
from .schemas import TeamCreate, TeamUpdate

logger = logging.getLogger(__name__)


def create_team(db: Session, payload: TeamCreate) -> Team:
    auction = lock_auction(db, payload.auction_id)
    existing = db.scalar(
        select(func.count()).select_from(Team).where(Team.auction_id == auction.id)
    )
    if existing >= auction.total_teams:
        logger.warning(f"Team limit reached for auction {auction.id}")
        raise ConflictError(
            f"Maximum number of teams ({auction.total_teams}) reached for this auction"
        )
    _ensure_unique_name(db, auction.id, payload.name)

    team = Team(
        id=str(uuid.uuid4()),
        auction_id=auction.id,
        name=payload.name,
        sport=payload.sport,
        captain=payload.captain,
        vice_captain=payload.vice_captain,
        budget=auction.max_bid_amount,
        remaining_budget=auction.max_bid_amount,
    )
    db.add(team)
    db.commit()
    db.refresh(team)
    logger.info(f"Team {team.name} created for auction {auction.id}")
    return team


def update_team(db: Session, team_id: str, payload: TeamUpdate) -> Team:
    team = get_team(db, team_id)
    lock_auction(db, team.auction_id)
    db.refresh(team)
    if payload.name is not None and payload.name != team.name:
        _ensure_unique_name(db, team.auction_id, payload.name)
        team.name = payload.name
    if payload.sport is not None:
        team.sport = payload.sport
    if payload.captain is not None:
        team.captain = payload.captain
    if payload.vice_captain is not None:
        team.vice_captain = payload.vice_captain
    db.commit()
    db.refresh(team)
    return team


def list_teams(db: Session, auction_id: str | None = None) -> list[Team]:
    query = select(Team).order_by(Team.created_at, Team.name)
    if auction_id:
        query = query.where(Team.auction_id == auction_id)
    return list(db.scalars(query).all())


def _ensure_unique_name(db: Session, auction_id: str, name: str) -> None:
    clash = db.scalars(
        select(Team).where(Team.auction_id == auction_id, Team.name == name)
    ).first()
    if clash:
        raise ConflictError(f"Team {name} already exists in this auction")


def ensure_budget(team: Team, amount: int) -> None:
    if amount > team.remaining_budget:
        raise BudgetExceededError(
            f"{team.name} has {team.remaining_budget} remaining, cannot spend {amount}"
        )


def roster_counts(team: Team) -> Counter:
    return Counter(player.category for player in team.roster if player.status == PLAYER_SOLD)


def ensure_roster_room(auction: Auction, team: Team, player: Player, amount: int) -> None:
    """
    Check the per-category roster bounds for selling ``player`` to ``team``.

    The sale must not exceed the category's ``max_players_per_team``, and the
    budget left afterwards must still cover every category's outstanding
    ``min_players_per_team`` at that category's minimum price.
    """
    counts = roster_counts(team)
    counts[player.category] += 1

    category = auction.category_named(player.category)
    if (
        category is not None
        and category.max_players_per_team is not None
        and counts[category.name] > category.max_players_per_team
    ):
        raise RosterConstraintError(
            f"{team.name} already has {category.max_players_per_team} "
            f"{category.name} players"
        )

    reserve = sum(
        max(0, item.min_players_per_team - counts[item.name]) * item.min_amount
        for item in auction.categories
    )
    if team.remaining_budget - amount < reserve:
        raise RosterConstraintError(
            f"{team.name} must keep {reserve} to fill minimum roster requirements"
        )


def debit(team: Team, player: Player, amount: int) -> None:
    ensure_budget(team, amount)
    team.remaining_budget -= amount
    player.team = team


def credit(team: Team, player: Player) -> None:
    team.remaining_budget += player.current_price or 0
    player.team = None
