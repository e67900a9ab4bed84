from __future__ import annotations

from datetime import date as calendar_date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


AUCTION_UPCOMING = "upcoming"
AUCTION_LIVE = "live"
AUCTION_COMPLETED = "completed"

PLAYER_YET_TO_AUCTION = "yet-to-auction"
PLAYER_BIDDING = "bidding"
PLAYER_SOLD = "sold"
PLAYER_UNSOLD = "unsold"


class Auction(Base):
    __tablename__ = "auctions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[calendar_date] = mapped_column(Date, nullable=False)
    total_teams: Mapped[int] = mapped_column(Integer, nullable=False)
    max_bid_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, default=AUCTION_UPCOMING)
    # Plain column: players already point at auctions, a second FK would make a cycle.
    current_lot_player_id: Mapped[str | None] = mapped_column(String, nullable=True)
    rules: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo: Mapped[str | None] = mapped_column(String, nullable=True)
    banner: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    categories: Mapped[list["Category"]] = relationship(
        back_populates="auction",
        cascade="all, delete-orphan",
        order_by="Category.position",
        lazy="selectin",
    )
    highlights: Mapped[list["Highlight"]] = relationship(
        cascade="all, delete-orphan", order_by="Highlight.id"
    )

    def category_named(self, name: str | None) -> "Category | None":
        for category in self.categories:
            if category.name == name:
                return category
        return None


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("auction_id", "name"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    auction_id: Mapped[str] = mapped_column(String, ForeignKey("auctions.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    color: Mapped[str | None] = mapped_column(String, nullable=True)
    min_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    max_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    bid_increment: Mapped[int] = mapped_column(Integer, nullable=False)
    min_players_per_team: Mapped[int] = mapped_column(Integer, default=0)
    max_players_per_team: Mapped[int | None] = mapped_column(Integer, nullable=True)

    auction: Mapped[Auction] = relationship(back_populates="categories")


class Team(Base):
    __tablename__ = "teams"
    __table_args__ = (UniqueConstraint("auction_id", "name"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    auction_id: Mapped[str] = mapped_column(String, ForeignKey("auctions.id"), index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    sport: Mapped[str] = mapped_column(String, nullable=False)
    captain: Mapped[str] = mapped_column(String, nullable=False)
    vice_captain: Mapped[str] = mapped_column(String, nullable=False)
    budget: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_budget: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    roster: Mapped[list["Player"]] = relationship(
        back_populates="team", lazy="selectin", order_by="Player.created_at"
    )


class Player(Base):
    __tablename__ = "players"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    sport: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    experience: Mapped[str | None] = mapped_column(String, nullable=True)
    achievements: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    base_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String, default=PLAYER_YET_TO_AUCTION)
    team_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("teams.id"), nullable=True, index=True
    )
    auction_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("auctions.id"), nullable=True, index=True
    )
    approved: Mapped[bool] = mapped_column(Boolean, default=False)
    payment_screenshot: Mapped[str | None] = mapped_column(String, nullable=True)
    lot_round: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    team: Mapped["Team | None"] = relationship(back_populates="roster")


class Bid(Base):
    __tablename__ = "bids"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_id: Mapped[str] = mapped_column(String, ForeignKey("auctions.id"), index=True)
    player_id: Mapped[str] = mapped_column(String, ForeignKey("players.id"), index=True)
    team_id: Mapped[str] = mapped_column(String, ForeignKey("teams.id"))
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    lot_round: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    team: Mapped[Team] = relationship(lazy="joined")


class Highlight(Base):
    __tablename__ = "highlights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_id: Mapped[str] = mapped_column(String, ForeignKey("auctions.id"), index=True)
    message: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Admin(Base):
    __tablename__ = "admins"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    username: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)


class AdminSession(Base):
    __tablename__ = "admin_sessions"

    token: Mapped[str] = mapped_column(String, primary_key=True)
    admin_id: Mapped[str] = mapped_column(String, ForeignKey("admins.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
