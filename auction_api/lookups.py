from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import NotFoundError
from .models import Auction, Player, Team


def get_auction(db: Session, auction_id: str) -> Auction:
    auction = db.get(Auction, auction_id)
    if not auction:
        raise NotFoundError(f"Auction {auction_id} not found")
    return auction


def lock_auction(db: Session, auction_id: str) -> Auction:
    """Load the auction row for update. Every write on an auction goes through here."""
    auction = db.scalars(
        select(Auction)
        .where(Auction.id == auction_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if not auction:
        raise NotFoundError(f"Auction {auction_id} not found")
    return auction


def lock_auctions(db: Session, *auction_ids: str | None) -> dict[str, Auction]:
    """Lock several auction rows, always in id order so two callers cannot deadlock."""
    return {
        auction_id: lock_auction(db, auction_id)
        for auction_id in sorted({auction_id for auction_id in auction_ids if auction_id})
    }


def get_player(db: Session, player_id: str) -> Player:
    player = db.get(Player, player_id)
    if not player:
        raise NotFoundError(f"Player {player_id} not found")
    return player


def get_auction_player(db: Session, auction_id: str, player_id: str) -> Player:
    player = db.get(Player, player_id)
    if not player or player.auction_id != auction_id:
        raise NotFoundError(f"Player {player_id} not found in auction {auction_id}")
    return player


def get_team(db: Session, team_id: str) -> Team:
    team = db.get(Team, team_id)
    if not team:
        raise NotFoundError(f"Team {team_id} not found")
    return team


def get_auction_team(db: Session, auction_id: str, team_id: str) -> Team:
    team = db.get(Team, team_id)
    if not team or team.auction_id != auction_id:
        raise NotFoundError(f"Team {team_id} not found in auction {auction_id}")
    return team
