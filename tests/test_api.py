from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy.orm import sessionmaker

from auction_api.db import build_engine, get_db
from auction_api.main import app

from .helpers import auction_payload


def _create_auction(client, headers, **overrides) -> dict:
    response = client.post("/auctions", json=auction_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _create_team(client, headers, auction_id: str, name: str):
    response = client.post(
        "/teams",
        json={
            "name": name,
            "sport": "Cricket",
            "captain": f"{name} Captain",
            "viceCaptain": f"{name} Vice",
            "auctionId": auction_id,
        },
        headers=headers,
    )
    return response


def _eligible_player(client, headers, auction_id: str, name: str) -> dict:
    registered = client.post(
        "/players/register",
        json={
            "name": name,
            "sport": "Cricket",
            "paymentScreenshot": f"https://example.test/payments/{name}.png",
        },
    )
    assert registered.status_code == 201
    player_id = registered.json()["id"]
    approved = client.post(
        f"/players/{player_id}/approve", json={"auctionId": auction_id}, headers=headers
    )
    assert approved.status_code == 200
    categorised = client.post(
        f"/players/{player_id}/category",
        json={"category": "Batsman", "auctionId": auction_id},
        headers=headers,
    )
    assert categorised.status_code == 200
    return categorised.json()


def _live_lot(client, headers):
    auction = _create_auction(client, headers)
    team_a = _create_team(client, headers, auction["id"], "Falcons").json()
    team_b = _create_team(client, headers, auction["id"], "Strikers").json()
    player = _eligible_player(client, headers, auction["id"], "Arjun Mehta")
    assert client.post(f"/auctions/{auction['id']}/start", headers=headers).status_code == 200
    opened = client.post(
        f"/auctions/{auction['id']}/lots", json={"playerId": player["id"]}, headers=headers
    )
    assert opened.status_code == 200
    return auction, team_a, team_b, opened.json()


def _bid(client, headers, auction_id, player_id, team_id, amount):
    return client.post(
        f"/auctions/{auction_id}/bids",
        json={"playerId": player_id, "teamId": team_id, "amount": amount},
        headers=headers,
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_login_rejects_bad_password(client):
    response = client.post("/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401


def test_operator_actions_need_token(client):
    response = client.post("/auctions", json=auction_payload())
    assert response.status_code == 401
    response = client.post(
        "/auctions", json=auction_payload(), headers={"Authorization": "Bearer bogus"}
    )
    assert response.status_code == 401


def test_create_auction_requires_fields(client, admin_headers):
    payload = auction_payload()
    del payload["maxBidAmount"]
    assert client.post("/auctions", json=payload, headers=admin_headers).status_code == 422

    payload = auction_payload(categories=[])
    assert client.post("/auctions", json=payload, headers=admin_headers).status_code == 422


def test_create_auction_rejects_bad_categories(client, admin_headers):
    category = {"name": "Batsman", "minAmount": 100, "maxAmount": 500, "bidIncrement": 50}
    duplicated = auction_payload(categories=[category, category])
    assert client.post("/auctions", json=duplicated, headers=admin_headers).status_code == 422

    inverted = auction_payload(categories=[{**category, "minAmount": 900}])
    assert client.post("/auctions", json=inverted, headers=admin_headers).status_code == 422

    no_increment = auction_payload(categories=[{**category, "bidIncrement": 0}])
    assert client.post("/auctions", json=no_increment, headers=admin_headers).status_code == 422


def test_auction_listing_and_lookup(client, admin_headers):
    created = _create_auction(client, admin_headers)

    assert created["status"] == "upcoming"
    assert created["categories"][0]["bidIncrement"] == 50_000
    assert [item["id"] for item in client.get("/auctions?status=upcoming").json()] == [
        created["id"]
    ]
    assert client.get("/auctions?status=live").json() == []
    assert client.get(f"/auctions/{created['id']}").json()["title"] == created["title"]

    missing = client.get("/auctions/unknown")
    assert missing.status_code == 404
    assert missing.json()["error"] == "NotFoundError"


def test_past_auction_is_immutable(client, admin_headers):
    past = (date.today() - timedelta(days=2)).isoformat()
    created = _create_auction(client, admin_headers, date=past)

    response = client.patch(
        f"/auctions/{created['id']}", json={"title": "Renamed"}, headers=admin_headers
    )

    assert response.status_code == 423
    assert response.json()["error"] == "ImmutableStateError"


def test_team_limit(client, admin_headers):
    auction = _create_auction(client, admin_headers, totalTeams=2)

    assert _create_team(client, admin_headers, auction["id"], "Falcons").status_code == 201
    assert _create_team(client, admin_headers, auction["id"], "Strikers").status_code == 201
    third = _create_team(client, admin_headers, auction["id"], "Titans")

    assert third.status_code == 409
    assert third.json()["error"] == "ConflictError"
    assert len(client.get(f"/teams?auctionId={auction['id']}").json()) == 2


def test_bidding_and_sale_flow(client, admin_headers):
    auction, team_a, team_b, player = _live_lot(client, admin_headers)
    auction_id, player_id = auction["id"], player["id"]

    assert player["status"] == "bidding"
    assert _bid(client, admin_headers, auction_id, player_id, team_a["id"], 150_000).status_code == 201

    low = _bid(client, admin_headers, auction_id, player_id, team_b["id"], 180_000)
    assert low.status_code == 422
    assert low.json()["error"] == "InvalidBidError"

    accepted = _bid(client, admin_headers, auction_id, player_id, team_b["id"], 200_000)
    assert accepted.status_code == 201
    assert accepted.json()["teamName"] == "Strikers"

    highest = client.get(f"/auctions/{auction_id}/players/{player_id}/highest").json()
    assert highest["amount"] == 200_000
    assert highest["teamId"] == team_b["id"]

    state = client.get(f"/auctions/{auction_id}/state").json()
    assert state["currentPlayer"]["id"] == player_id
    assert state["nextMinimumBid"] == 250_000
    assert [bid["amount"] for bid in state["bidHistory"]] == [200_000, 150_000]

    sold = client.post(
        f"/auctions/{auction_id}/lots/{player_id}/sell",
        json={"teamId": team_b["id"]},
        headers=admin_headers,
    )
    assert sold.status_code == 200
    assert sold.json()["status"] == "sold"
    assert sold.json()["currentPrice"] == 200_000

    team = client.get(f"/teams/{team_b['id']}").json()
    assert team["remainingBudget"] == 800_000
    assert [member["id"] for member in team["players"]] == [player_id]
    assert client.get(f"/auctions/{auction_id}").json()["currentLotPlayerId"] is None

    again = client.post(
        f"/auctions/{auction_id}/lots/{player_id}/sell",
        json={"teamId": team_b["id"]},
        headers=admin_headers,
    )
    assert again.status_code == 409
    assert again.json()["error"] == "SettlementConflictError"

    bids = client.get(f"/players/{player_id}/bids").json()
    assert [bid["amount"] for bid in bids] == [200_000, 150_000]

    summary = client.get(f"/auctions/{auction_id}/summary").json()
    assert summary["soldPlayers"] == 1
    assert summary["totalValue"] == 200_000
    assert summary["topSale"]["id"] == player_id


def test_bid_over_budget(client, admin_headers):
    auction, team_a, _, player = _live_lot(client, admin_headers)

    response = _bid(client, admin_headers, auction["id"], player["id"], team_a["id"], 1_500_000)

    assert response.status_code == 422
    assert response.json()["error"] == "BudgetExceededError"
    assert client.get(f"/players/{player['id']}/bids").json() == []


def test_second_lot_conflicts(client, admin_headers):
    auction, _, _, _ = _live_lot(client, admin_headers)
    other = _eligible_player(client, admin_headers, auction["id"], "Kabir Rao")

    response = client.post(
        f"/auctions/{auction['id']}/lots", json={"playerId": other["id"]}, headers=admin_headers
    )

    assert response.status_code == 409
    assert response.json()["error"] == "ConflictError"


def test_unsold_and_reset(client, admin_headers):
    auction, team_a, _, player = _live_lot(client, admin_headers)
    auction_id, player_id = auction["id"], player["id"]

    unsold = client.post(f"/auctions/{auction_id}/lots/{player_id}/unsold", headers=admin_headers)
    assert unsold.json()["status"] == "unsold"

    reset = client.post(f"/players/{player_id}/reset", headers=admin_headers)
    assert reset.json()["status"] == "yet-to-auction"

    client.post(f"/auctions/{auction_id}/lots", json={"playerId": player_id}, headers=admin_headers)
    client.post(
        f"/auctions/{auction_id}/lots/{player_id}/sell",
        json={"teamId": team_a["id"]},
        headers=admin_headers,
    )
    assert client.get(f"/teams/{team_a['id']}").json()["remainingBudget"] == 900_000

    client.post(f"/players/{player_id}/reset", headers=admin_headers)
    team = client.get(f"/teams/{team_a['id']}").json()
    assert team["remainingBudget"] == 1_000_000
    assert team["players"] == []


def test_highlights_and_completion(client, admin_headers):
    auction, _, _, player = _live_lot(client, admin_headers)
    auction_id = auction["id"]

    client.post(
        f"/auctions/{auction_id}/highlights",
        json={"message": "Record crowd tonight"},
        headers=admin_headers,
    )
    blocked = client.post(f"/auctions/{auction_id}/complete", headers=admin_headers)
    assert blocked.status_code == 409

    client.post(f"/auctions/{auction_id}/lots/{player['id']}/unsold", headers=admin_headers)
    completed = client.post(f"/auctions/{auction_id}/complete", headers=admin_headers)

    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert "Record crowd tonight" in completed.json()["highlights"]


def test_websocket_sends_snapshot(client, admin_headers):
    auction, _, _, player = _live_lot(client, admin_headers)

    with client.websocket_connect(f"/ws?auctionId={auction['id']}") as websocket:
        lobby = websocket.receive_json()
        state = websocket.receive_json()

    assert lobby["event"] == "lobby_update"
    assert len(lobby["payload"]["teams"]) == 2
    assert state["event"] == "auction_state"
    assert state["payload"]["currentPlayer"]["id"] == player["id"]


def test_storage_failure_is_reported_as_unavailable(client, tmp_path):
    broken = sessionmaker(bind=build_engine(f"sqlite:///{tmp_path / 'missing' / 'auction.db'}"))

    def broken_db():
        session = broken()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = broken_db
    response = client.get("/auctions")

    assert response.status_code == 503
    assert response.json()["error"] == "StorageUnavailableError"


def test_category_ids_are_assigned_by_the_server(client, admin_headers):
    category = {
        "id": "fixed",
        "name": "Batsman",
        "minAmount": 100_000,
        "maxAmount": 500_000,
        "bidIncrement": 50_000,
    }
    first = _create_auction(client, admin_headers, categories=[category])
    second = _create_auction(client, admin_headers, categories=[category])

    first_id = first["categories"][0]["id"]
    second_id = second["categories"][0]["id"]
    assert "fixed" not in (first_id, second_id)
    assert first_id != second_id


def test_create_auction_rejects_unaffordable_minimum_rosters(client, admin_headers):
    category = {
        "name": "Batsman",
        "minAmount": 300_000,
        "maxAmount": 500_000,
        "bidIncrement": 50_000,
        "minPlayersPerTeam": 4,
    }
    response = client.post(
        "/auctions", json=auction_payload(categories=[category]), headers=admin_headers
    )

    assert response.status_code == 422
