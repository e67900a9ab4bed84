from __future__ import annotations

import datetime as dt
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


AuctionStatus = Literal["upcoming", "live", "completed"]
PlayerStatus = Literal["yet-to-auction", "bidding", "sold", "unsold"]


class BaseSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class CategoryIn(BaseSchema):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    color: Optional[str] = None
    min_amount: int = Field(..., ge=0, alias="minAmount")
    max_amount: int = Field(..., ge=0, alias="maxAmount")
    bid_increment: int = Field(..., gt=0, alias="bidIncrement")
    min_players_per_team: int = Field(default=0, ge=0, alias="minPlayersPerTeam")
    max_players_per_team: Optional[int] = Field(default=None, ge=0, alias="maxPlayersPerTeam")

    @model_validator(mode="after")
    def _check_bounds(self) -> "CategoryIn":
        if self.min_amount > self.max_amount:
            raise ValueError(f"Category {self.name}: minAmount exceeds maxAmount")
        if (
            self.max_players_per_team is not None
            and self.min_players_per_team > self.max_players_per_team
        ):
            raise ValueError(
                f"Category {self.name}: minPlayersPerTeam exceeds maxPlayersPerTeam"
            )
        return self


class CategoryOut(CategoryIn):
    id: str


def _check_unique_names(categories: list[CategoryIn] | None) -> None:
    if not categories:
        return
    names = [category.name for category in categories]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate category names: {', '.join(duplicates)}")


def roster_floor(categories: Iterable) -> int:
    """Cheapest spend that fills every category's minimum roster.

    Takes request categories or stored ``Category`` rows.
    """
    return sum(item.min_players_per_team * item.min_amount for item in categories)


def _check_roster_floor(categories: list[CategoryIn], max_bid_amount: int) -> None:
    floor = roster_floor(categories)
    if floor > max_bid_amount:
        raise ValueError(
            f"Minimum rosters cost {floor}, more than the team budget of {max_bid_amount}"
        )


class AuctionCreate(BaseSchema):
    title: str = Field(..., min_length=1)
    date: dt.date
    total_teams: int = Field(..., ge=1, alias="totalTeams")
    max_bid_amount: int = Field(..., gt=0, alias="maxBidAmount")
    categories: list[CategoryIn] = Field(..., min_length=1)
    rules: Optional[str] = None
    logo: Optional[str] = None
    banner: Optional[str] = None

    @model_validator(mode="after")
    def _check_categories(self) -> "AuctionCreate":
        _check_unique_names(self.categories)
        _check_roster_floor(self.categories, self.max_bid_amount)
        return self


class AuctionUpdate(BaseSchema):
    title: Optional[str] = Field(default=None, min_length=1)
    date: Optional[dt.date] = None
    total_teams: Optional[int] = Field(default=None, ge=1, alias="totalTeams")
    max_bid_amount: Optional[int] = Field(default=None, gt=0, alias="maxBidAmount")
    categories: Optional[list[CategoryIn]] = Field(default=None, min_length=1)
    rules: Optional[str] = None
    logo: Optional[str] = None
    banner: Optional[str] = None

    @model_validator(mode="after")
    def _check_categories(self) -> "AuctionUpdate":
        _check_unique_names(self.categories)
        if self.categories is not None and self.max_bid_amount is not None:
            _check_roster_floor(self.categories, self.max_bid_amount)
        return self


class AuctionOut(BaseSchema):
    id: str
    title: str
    date: dt.date
    total_teams: int = Field(..., alias="totalTeams")
    max_bid_amount: int = Field(..., alias="maxBidAmount")
    categories: list[CategoryOut] = []
    status: AuctionStatus
    current_lot_player_id: Optional[str] = Field(default=None, alias="currentLotPlayerId")
    rules: Optional[str] = None
    logo: Optional[str] = None
    banner: Optional[str] = None
    highlights: list[str] = []
    created_at: str = Field(..., alias="createdAt")


class PlayerRegister(BaseSchema):
    name: str = Field(..., min_length=1)
    sport: str = Field(..., min_length=1)
    category: Optional[str] = None
    experience: Optional[str] = None
    achievements: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    payment_screenshot: Optional[str] = Field(default=None, alias="paymentScreenshot")


class PlayerUpdate(BaseSchema):
    name: Optional[str] = Field(default=None, min_length=1)
    sport: Optional[str] = Field(default=None, min_length=1)
    experience: Optional[str] = None
    achievements: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None


class PlayerApprove(BaseSchema):
    auction_id: str = Field(..., alias="auctionId")


class PlayerCategoryUpdate(BaseSchema):
    category: str = Field(..., min_length=1)
    auction_id: str = Field(..., alias="auctionId")


class PlayerOut(BaseSchema):
    id: str
    name: str
    sport: str
    category: Optional[str] = None
    experience: Optional[str] = None
    achievements: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    base_price: Optional[int] = Field(default=None, alias="basePrice")
    current_price: Optional[int] = Field(default=None, alias="currentPrice")
    status: PlayerStatus
    team_id: Optional[str] = Field(default=None, alias="teamId")
    auction_id: Optional[str] = Field(default=None, alias="auctionId")
    approved: bool
    payment_screenshot: Optional[str] = Field(default=None, alias="paymentScreenshot")
    lot_round: int = Field(default=0, alias="lotRound")


class TeamCreate(BaseSchema):
    name: str = Field(..., min_length=1)
    sport: str = Field(..., min_length=1)
    captain: str = Field(..., min_length=1)
    vice_captain: str = Field(..., min_length=1, alias="viceCaptain")
    auction_id: str = Field(..., alias="auctionId")


class TeamUpdate(BaseSchema):
    name: Optional[str] = Field(default=None, min_length=1)
    sport: Optional[str] = Field(default=None, min_length=1)
    captain: Optional[str] = Field(default=None, min_length=1)
    vice_captain: Optional[str] = Field(default=None, min_length=1, alias="viceCaptain")


class TeamOut(BaseSchema):
    id: str
    name: str
    sport: str
    captain: str
    vice_captain: str = Field(..., alias="viceCaptain")
    budget: int
    remaining_budget: int = Field(..., alias="remainingBudget")
    auction_id: str = Field(..., alias="auctionId")
    players: list[PlayerOut] = []
    created_at: str = Field(..., alias="createdAt")


class BidRequest(BaseSchema):
    player_id: str = Field(..., alias="playerId")
    team_id: str = Field(..., alias="teamId")
    amount: int = Field(..., gt=0)


class BidOut(BaseSchema):
    id: int
    auction_id: str = Field(..., alias="auctionId")
    player_id: str = Field(..., alias="playerId")
    team_id: str = Field(..., alias="teamId")
    team_name: Optional[str] = Field(default=None, alias="teamName")
    amount: int
    timestamp: str


class OpenLotRequest(BaseSchema):
    player_id: str = Field(..., alias="playerId")


class SellRequest(BaseSchema):
    team_id: str = Field(..., alias="teamId")


class HighlightRequest(BaseSchema):
    message: str = Field(..., min_length=1)


class AuctionStateOut(BaseSchema):
    auction: AuctionOut
    current_player: Optional[PlayerOut] = Field(default=None, alias="currentPlayer")
    current_highest: Optional[BidOut] = Field(default=None, alias="currentHighest")
    next_minimum_bid: Optional[int] = Field(default=None, alias="nextMinimumBid")
    bid_history: list[BidOut] = Field(default_factory=list, alias="bidHistory")
    highlights: list[str] = []


class AuctionSummaryOut(BaseSchema):
    total_players: int = Field(..., alias="totalPlayers")
    approved_players: int = Field(..., alias="approvedPlayers")
    sold_players: int = Field(..., alias="soldPlayers")
    unsold_players: int = Field(..., alias="unsoldPlayers")
    remaining_players: int = Field(..., alias="remainingPlayers")
    total_teams: int = Field(..., alias="totalTeams")
    total_value: int = Field(..., alias="totalValue")
    top_sale: Optional[PlayerOut] = Field(default=None, alias="topSale")


class AdminLoginRequest(BaseSchema):
    username: str
    password: str


class AdminLoginResponse(BaseSchema):
    token: str
