from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from . import auctions, bids, config, players, settlement, teams
from .auth import authenticate, ensure_default_admin, require_admin
from .db import Base, begin_read_only, get_db
from .errors import AuctionError, StorageUnavailableError
from .lookups import get_auction, get_player, get_team
from .models import Auction, Bid, Category, Player, Team
from .schemas import (
    AdminLoginRequest,
    AdminLoginResponse,
    AuctionCreate,
    AuctionOut,
    AuctionStateOut,
    AuctionStatus,
    AuctionSummaryOut,
    AuctionUpdate,
    BidOut,
    BidRequest,
    CategoryOut,
    HighlightRequest,
    OpenLotRequest,
    PlayerApprove,
    PlayerCategoryUpdate,
    PlayerOut,
    PlayerRegister,
    PlayerStatus,
    PlayerUpdate,
    SellRequest,
    TeamCreate,
    TeamOut,
    TeamUpdate,
)
from .ws import AuctionBroadcaster

logger = logging.getLogger(__name__)

app = FastAPI(title="Sports Auction API", version="0.1.0")
broadcaster = AuctionBroadcaster()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

admin_only = [Depends(require_admin)]


@app.exception_handler(AuctionError)
async def auction_error_handler(request: Request, exc: AuctionError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.detail},
    )


@app.exception_handler(OperationalError)
async def storage_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error(f"Storage failure on {request.url.path}: {exc}", exc_info=True)
    error = StorageUnavailableError("Storage is unavailable, try again")
    return await auction_error_handler(request, error)


def _open_session():
    provider = app.dependency_overrides.get(get_db, get_db)
    return provider()


def get_read_db(db: Session = Depends(get_db)) -> Session:
    return begin_read_only(db)


def _category_to_out(category: Category) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        description=category.description,
        color=category.color,
        min_amount=category.min_amount,
        max_amount=category.max_amount,
        bid_increment=category.bid_increment,
        min_players_per_team=category.min_players_per_team,
        max_players_per_team=category.max_players_per_team,
    )


def _auction_to_out(auction: Auction) -> AuctionOut:
    return AuctionOut(
        id=auction.id,
        title=auction.title,
        date=auction.date,
        total_teams=auction.total_teams,
        max_bid_amount=auction.max_bid_amount,
        categories=[_category_to_out(category) for category in auction.categories],
        status=auction.status,
        current_lot_player_id=auction.current_lot_player_id,
        rules=auction.rules,
        logo=auction.logo,
        banner=auction.banner,
        highlights=[highlight.message for highlight in auction.highlights],
        created_at=auction.created_at.isoformat(),
    )


def _player_to_out(player: Player) -> PlayerOut:
    return PlayerOut(
        id=player.id,
        name=player.name,
        sport=player.sport,
        category=player.category,
        experience=player.experience,
        achievements=player.achievements,
        contact=player.contact,
        email=player.email,
        base_price=player.base_price,
        current_price=player.current_price,
        status=player.status,
        team_id=player.team_id,
        auction_id=player.auction_id,
        approved=player.approved,
        payment_screenshot=player.payment_screenshot,
        lot_round=player.lot_round,
    )


def _team_to_out(team: Team) -> TeamOut:
    return TeamOut(
        id=team.id,
        name=team.name,
        sport=team.sport,
        captain=team.captain,
        vice_captain=team.vice_captain,
        budget=team.budget,
        remaining_budget=team.remaining_budget,
        auction_id=team.auction_id,
        players=[_player_to_out(player) for player in team.roster],
        created_at=team.created_at.isoformat(),
    )


def _bid_to_out(bid: Bid | None) -> BidOut | None:
    if not bid:
        return None
    return BidOut(
        id=bid.id,
        auction_id=bid.auction_id,
        player_id=bid.player_id,
        team_id=bid.team_id,
        team_name=bid.team.name if bid.team else None,
        amount=bid.amount,
        timestamp=bid.created_at.isoformat(),
    )


def _state_to_out(state: auctions.AuctionState) -> AuctionStateOut:
    return AuctionStateOut(
        auction=_auction_to_out(state.auction),
        current_player=_player_to_out(state.current_player) if state.current_player else None,
        current_highest=_bid_to_out(state.current_highest),
        next_minimum_bid=state.next_minimum_bid,
        bid_history=[_bid_to_out(bid) for bid in state.bid_history],
        highlights=state.highlights,
    )


def _players_out(items: Iterable[Player]) -> list[dict]:
    return [_player_to_out(player).model_dump(by_alias=True, mode="json") for player in items]


def _teams_out(items: Iterable[Team]) -> list[dict]:
    return [_team_to_out(team).model_dump(by_alias=True, mode="json") for team in items]


def _state_payload(db: Session, auction_id: str) -> dict:
    state = auctions.auction_state(db, auction_id)
    return _state_to_out(state).model_dump(by_alias=True, mode="json")


def _lobby_payload(db: Session, auction_id: str) -> dict:
    return {
        "auctionId": auction_id,
        "teams": _teams_out(teams.list_teams(db, auction_id)),
        "players": _players_out(players.list_players(db, auction_id=auction_id)),
    }


def _publish_state(db: Session, auction_id: str) -> None:
    if broadcaster.watched(auction_id):
        broadcaster.submit(auction_id, "auction_state", _state_payload(db, auction_id))


def _publish_lobby(db: Session, auction_id: str | None) -> None:
    if auction_id and broadcaster.watched(auction_id):
        broadcaster.submit(auction_id, "lobby_update", _lobby_payload(db, auction_id))


@app.on_event("startup")
async def on_startup() -> None:
    config.configure_logging()
    sessions = _open_session()
    db = next(sessions)
    try:
        Base.metadata.create_all(bind=db.get_bind())
        ensure_default_admin(db)
    finally:
        sessions.close()

    broadcaster.start()
    logger.info("Auction API started")


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "time": datetime.utcnow().isoformat()}


@app.post("/auth/login", response_model=AdminLoginResponse)
def login(payload: AdminLoginRequest, db: Session = Depends(get_db)) -> AdminLoginResponse:
    token = authenticate(db, payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return AdminLoginResponse(token=token)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    auction_id = websocket.query_params.get("auctionId")
    if not auction_id:
        await websocket.close(code=1008)
        return
    await broadcaster.subscribe(websocket, auction_id)
    try:
        sessions = _open_session()
        db = begin_read_only(next(sessions))
        try:
            await websocket.send_json(
                {"event": "lobby_update", "payload": _lobby_payload(db, auction_id)}
            )
            await websocket.send_json(
                {"event": "auction_state", "payload": _state_payload(db, auction_id)}
            )
        except AuctionError as exc:
            await websocket.send_json({"event": "error", "payload": {"detail": exc.detail}})
        finally:
            sessions.close()

        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        broadcaster.unsubscribe(websocket, auction_id)


# ----- Auctions -----


@app.post(
    "/auctions",
    response_model=AuctionOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
def create_auction(payload: AuctionCreate, db: Session = Depends(get_db)) -> AuctionOut:
    auction = auctions.create_auction(db, payload)
    return _auction_to_out(auction)


@app.get("/auctions", response_model=list[AuctionOut])
def list_auctions(
    auction_status: Optional[AuctionStatus] = Query(default=None, alias="status"),
    db: Session = Depends(get_read_db),
) -> list[AuctionOut]:
    return [_auction_to_out(item) for item in auctions.list_auctions(db, auction_status)]


@app.get("/auctions/{auction_id}", response_model=AuctionOut)
def get_auction_detail(auction_id: str, db: Session = Depends(get_read_db)) -> AuctionOut:
    return _auction_to_out(get_auction(db, auction_id))


@app.patch("/auctions/{auction_id}", response_model=AuctionOut, dependencies=admin_only)
def update_auction(
    auction_id: str, payload: AuctionUpdate, db: Session = Depends(get_db)
) -> AuctionOut:
    auction = auctions.update_auction(db, auction_id, payload)
    _publish_state(db, auction_id)
    return _auction_to_out(auction)


@app.post("/auctions/{auction_id}/start", response_model=AuctionOut, dependencies=admin_only)
def start_auction(auction_id: str, db: Session = Depends(get_db)) -> AuctionOut:
    auction = auctions.start_auction(db, auction_id)
    _publish_state(db, auction_id)
    return _auction_to_out(auction)


@app.post("/auctions/{auction_id}/complete", response_model=AuctionOut, dependencies=admin_only)
def complete_auction(
    auction_id: str, force: bool = False, db: Session = Depends(get_db)
) -> AuctionOut:
    auction = auctions.complete_auction(db, auction_id, force=force)
    _publish_state(db, auction_id)
    return _auction_to_out(auction)


@app.post(
    "/auctions/{auction_id}/highlights", response_model=AuctionOut, dependencies=admin_only
)
def add_highlight(
    auction_id: str, payload: HighlightRequest, db: Session = Depends(get_db)
) -> AuctionOut:
    auction = auctions.add_highlight(db, auction_id, payload.message)
    _publish_state(db, auction_id)
    return _auction_to_out(auction)


@app.get("/auctions/{auction_id}/state", response_model=AuctionStateOut)
def get_auction_state(auction_id: str, db: Session = Depends(get_read_db)) -> AuctionStateOut:
    return _state_to_out(auctions.auction_state(db, auction_id))


@app.get("/auctions/{auction_id}/summary", response_model=AuctionSummaryOut)
def get_auction_summary(
    auction_id: str, db: Session = Depends(get_read_db)
) -> AuctionSummaryOut:
    summary = auctions.auction_summary(db, auction_id)
    return AuctionSummaryOut(
        total_players=summary.total_players,
        approved_players=summary.approved_players,
        sold_players=summary.sold_players,
        unsold_players=summary.unsold_players,
        remaining_players=summary.remaining_players,
        total_teams=summary.total_teams,
        total_value=summary.total_value,
        top_sale=_player_to_out(summary.top_sale) if summary.top_sale else None,
    )


# ----- Lots, bids and settlement -----


@app.post(
    "/auctions/{auction_id}/lots",
    response_model=PlayerOut,
    dependencies=admin_only,
)
def open_lot(
    auction_id: str, payload: OpenLotRequest, db: Session = Depends(get_db)
) -> PlayerOut:
    player = auctions.open_lot(db, auction_id, payload.player_id)
    _publish_state(db, auction_id)
    _publish_lobby(db, auction_id)
    return _player_to_out(player)


@app.post(
    "/auctions/{auction_id}/bids",
    response_model=BidOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
def place_bid(auction_id: str, payload: BidRequest, db: Session = Depends(get_db)) -> BidOut:
    bid = bids.place_bid(db, auction_id, payload.player_id, payload.team_id, payload.amount)
    _publish_state(db, auction_id)
    return _bid_to_out(bid)


@app.get(
    "/auctions/{auction_id}/players/{player_id}/highest",
    response_model=Optional[BidOut],
)
def get_current_highest(
    auction_id: str, player_id: str, db: Session = Depends(get_read_db)
) -> Optional[BidOut]:
    return _bid_to_out(bids.current_highest(db, auction_id, player_id))


@app.post(
    "/auctions/{auction_id}/lots/{player_id}/sell",
    response_model=PlayerOut,
    dependencies=admin_only,
)
def sell_player(
    auction_id: str, player_id: str, payload: SellRequest, db: Session = Depends(get_db)
) -> PlayerOut:
    player = settlement.sell(db, auction_id, player_id, payload.team_id)
    _publish_state(db, auction_id)
    _publish_lobby(db, auction_id)
    return _player_to_out(player)


@app.post(
    "/auctions/{auction_id}/lots/{player_id}/unsold",
    response_model=PlayerOut,
    dependencies=admin_only,
)
def mark_player_unsold(
    auction_id: str, player_id: str, db: Session = Depends(get_db)
) -> PlayerOut:
    player = settlement.mark_unsold(db, auction_id, player_id)
    _publish_state(db, auction_id)
    _publish_lobby(db, auction_id)
    return _player_to_out(player)


# ----- Players -----


@app.post("/players/register", response_model=PlayerOut, status_code=status.HTTP_201_CREATED)
def register_player(payload: PlayerRegister, db: Session = Depends(get_db)) -> PlayerOut:
    player = players.register_player(db, payload, payload.payment_screenshot)
    return _player_to_out(player)


@app.get("/players", response_model=list[PlayerOut])
def list_players(
    auction_id: Optional[str] = Query(default=None, alias="auctionId"),
    approved: Optional[bool] = None,
    player_status: Optional[PlayerStatus] = Query(default=None, alias="status"),
    category: Optional[str] = None,
    sport: Optional[str] = None,
    db: Session = Depends(get_read_db),
) -> list[PlayerOut]:
    items = players.list_players(
        db,
        auction_id=auction_id,
        approved=approved,
        status=player_status,
        category=category,
        sport=sport,
    )
    return [_player_to_out(player) for player in items]


@app.get("/players/{player_id}", response_model=PlayerOut)
def get_player_detail(player_id: str, db: Session = Depends(get_read_db)) -> PlayerOut:
    return _player_to_out(get_player(db, player_id))


@app.patch("/players/{player_id}", response_model=PlayerOut, dependencies=admin_only)
def update_player(
    player_id: str, payload: PlayerUpdate, db: Session = Depends(get_db)
) -> PlayerOut:
    player = players.update_player(db, player_id, payload)
    _publish_lobby(db, player.auction_id)
    return _player_to_out(player)


@app.post("/players/{player_id}/approve", response_model=PlayerOut, dependencies=admin_only)
def approve_player(
    player_id: str, payload: PlayerApprove, db: Session = Depends(get_db)
) -> PlayerOut:
    player = players.approve_player(db, player_id, payload.auction_id)
    _publish_lobby(db, player.auction_id)
    return _player_to_out(player)


@app.post("/players/{player_id}/category", response_model=PlayerOut, dependencies=admin_only)
def set_player_category(
    player_id: str, payload: PlayerCategoryUpdate, db: Session = Depends(get_db)
) -> PlayerOut:
    player = players.set_player_category(db, player_id, payload.category, payload.auction_id)
    _publish_lobby(db, player.auction_id)
    return _player_to_out(player)


@app.post("/players/{player_id}/reset", response_model=PlayerOut, dependencies=admin_only)
def reset_player(player_id: str, db: Session = Depends(get_db)) -> PlayerOut:
    player = settlement.reset_player(db, player_id)
    if player.auction_id:
        _publish_state(db, player.auction_id)
        _publish_lobby(db, player.auction_id)
    return _player_to_out(player)


@app.get("/players/{player_id}/bids", response_model=list[BidOut])
def list_player_bids(player_id: str, db: Session = Depends(get_read_db)) -> list[BidOut]:
    return [_bid_to_out(bid) for bid in bids.list_bids(db, player_id)]


# ----- Teams -----


@app.post(
    "/teams",
    response_model=TeamOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
def create_team(payload: TeamCreate, db: Session = Depends(get_db)) -> TeamOut:
    team = teams.create_team(db, payload)
    _publish_lobby(db, team.auction_id)
    return _team_to_out(team)


@app.get("/teams", response_model=list[TeamOut])
def list_teams(
    auction_id: Optional[str] = Query(default=None, alias="auctionId"),
    db: Session = Depends(get_read_db),
) -> list[TeamOut]:
    return [_team_to_out(team) for team in teams.list_teams(db, auction_id)]


@app.get("/teams/{team_id}", response_model=TeamOut)
def get_team_detail(team_id: str, db: Session = Depends(get_read_db)) -> TeamOut:
    return _team_to_out(get_team(db, team_id))


@app.patch("/teams/{team_id}", response_model=TeamOut, dependencies=admin_only)
def update_team(team_id: str, payload: TeamUpdate, db: Session = Depends(get_db)) -> TeamOut:
    team = teams.update_team(db, team_id, payload)
    _publish_lobby(db, team.auction_id)
    return _team_to_out(team)
