from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy.orm import Session

from auction_api import auctions, players, teams
from auction_api.models import Auction, Player, Team
from auction_api.schemas import AuctionCreate, PlayerRegister, TeamCreate


def future_date(days: int = 30) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def auction_payload(**overrides) -> dict:
    payload = {
        "title": "City Premier League",
        "date": future_date(),
        "totalTeams": 2,
        "maxBidAmount": 1_000_000,
        "categories": [
            {
                "name": "Batsman",
                "minAmount": 100_000,
                "maxAmount": 500_000,
                "bidIncrement": 50_000,
            }
        ],
    }
    payload.update(overrides)
    return payload


def build_auction(db: Session, **overrides) -> Auction:
    return auctions.create_auction(db, AuctionCreate.model_validate(auction_payload(**overrides)))


def build_team(db: Session, auction: Auction, name: str) -> Team:
    return teams.create_team(
        db,
        TeamCreate(
            name=name,
            sport="Cricket",
            captain=f"{name} Captain",
            vice_captain=f"{name} Vice",
            auction_id=auction.id,
        ),
    )


def build_player(
    db: Session, auction: Auction, name: str, category: str | None = "Batsman"
) -> Player:
    player = players.register_player(
        db,
        PlayerRegister(name=name, sport="Cricket", category=category),
        f"https://example.test/payments/{name}.png",
    )
    player = players.approve_player(db, player.id, auction.id)
    if category:
        player = players.set_player_category(db, player.id, category, auction.id)
    return player


@dataclass
class LiveLot:
    db: Session
    auction: Auction
    team_a: Team
    team_b: Team
    player: Player


def open_live_lot(db: Session, **auction_overrides) -> LiveLot:
    auction = build_auction(db, **auction_overrides)
    team_a = build_team(db, auction, "Falcons")
    team_b = build_team(db, auction, "Strikers")
    player = build_player(db, auction, "Arjun Mehta")
    auctions.start_auction(db, auction.id)
    player = auctions.open_lot(db, auction.id, player.id)
    return LiveLot(db=db, auction=auction, team_a=team_a, team_b=team_b, player=player)
