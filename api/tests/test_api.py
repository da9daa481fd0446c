"""API tests: health, auth, availability, bookings, payments, admin tools."""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from sqlalchemy import select, update

from app.core.auth import create_access_token
from app.models import Booking, PaymentLog, PaymentLogStatus, Refund


def auth(profile) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(profile.id))}"}


def booking_body(club, start="10:00", **extra) -> dict:
    body = {"court_id": club.double.id, "booking_date": club.day.isoformat(), "start_time": start}
    body.update(extra)
    return body


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_bookings_require_token(client, club):
    response = await client.post("/api/v1/bookings", json=booking_body(club))
    assert response.status_code == 401


async def test_expired_token_rejected(client, club):
    token = create_access_token(str(club.organizer.id), lifetime=timedelta(minutes=-1))
    response = await client.get("/api/v1/profiles/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


async def test_admin_routes_reject_players(client, club):
    response = await client.get("/api/v1/admin/settings", headers=auth(club.organizer))
    assert response.status_code == 403


# --- Club ---


async def test_opening_hours_listed_monday_first(client, club):
    response = await client.get("/api/v1/opening-hours")
    assert [row["day_of_week"] for row in response.json()] == [1, 2, 3, 4, 5, 6, 0]


async def test_availability_grid(client, club):
    response = await client.get("/api/v1/availability", params={"date": club.day.isoformat()})
    assert response.status_code == 200
    courts = {c["court_name"]: c for c in response.json()}

    double = courts["Terrain 1"]
    assert double["closed"] is False
    # 08:00-22:00 in 90-minute games: 9 full slots, the last at 20:00
    assert len(double["slots"]) == 9
    assert double["slots"][0]["start_time"] == "08:00"
    assert double["slots"][-1]["end_time"] == "21:30"
    assert all(s["is_available"] and s["price"] == 2000 for s in double["slots"])


async def test_availability_marks_booked_slot(client, club):
    created = await client.post("/api/v1/bookings", json=booking_body(club, "10:00"), headers=auth(club.organizer))
    booking_id = created.json()["id"]

    response = await client.get("/api/v1/availability", params={"date": club.day.isoformat()})
    slots = {s["start_time"]: s for s in response.json()[0]["slots"]}
    # a slot is taken when its start falls inside the 10:00-11:30 game
    assert slots["09:30"]["is_available"] is True
    assert slots["11:00"]["booking_id"] == booking_id
    assert slots["12:30"]["is_available"] is True


async def test_availability_on_holiday(client, club):
    await client.post(
        "/api/v1/admin/holidays",
        json={"date": club.day.isoformat(), "reason": "Tournoi"},
        headers=auth(club.admin),
    )
    response = await client.get("/api/v1/availability", params={"date": club.day.isoformat()})
    assert all(c["closed"] and c["slots"] == [] for c in response.json())


async def test_availability_shows_promotional_price(client, club):
    response = await client.post(
        "/api/v1/admin/promotions",
        json={
            "name": "Matinale",
            "label": "-20% le matin",
            "court_ids": [club.double.id],
            "discount_type": "percentage",
            "discount_value": 20,
            "start_at": f"{club.day.isoformat()}T08:00:00",
            "end_at": f"{club.day.isoformat()}T12:00:00",
        },
        headers=auth(club.admin),
    )
    assert response.status_code == 201

    response = await client.get("/api/v1/availability", params={"date": club.day.isoformat()})
    courts = {c["court_name"]: c for c in response.json()}
    morning = courts["Terrain 1"]["slots"][0]
    assert morning["price"] == 1600
    assert morning["original_price"] == 2000
    assert morning["promotion_label"] == "-20% le matin"
    # other court and afternoon slots keep the list price
    assert courts["Terrain Simple"]["slots"][0]["price"] == 1500
    assert courts["Terrain 1"]["slots"][-1]["price"] == 2000


# --- Bookings ---


async def test_create_booking(client, club):
    body = booking_body(club, participant_ids=[club.players[0].id])
    response = await client.post("/api/v1/bookings", json=body, headers=auth(club.organizer))
    assert response.status_code == 201

    data = response.json()
    assert data["end_time"] == "11:30:00"
    assert data["players_count"] == 4
    assert data["payment_status"] == "pending_payment"
    assert data["payment_label"] == "En attente de paiement"
    assert data["participants"][0]["profile"]["username"] == "player1"

    mine = await client.get("/api/v1/bookings", headers=auth(club.players[0]))
    assert [b["id"] for b in mine.json()] == [data["id"]]


async def test_booking_errors_carry_rule(client, club):
    headers = auth(club.organizer)
    await client.post("/api/v1/bookings", json=booking_body(club), headers=headers)

    conflict = await client.post("/api/v1/bookings", json=booking_body(club, "11:00"), headers=headers)
    assert conflict.status_code == 409
    assert conflict.json()["detail"][0]["rule"] == "court_conflict"

    crowded = booking_body(club, "14:00", participant_ids=[p.id for p in club.players])
    response = await client.post("/api/v1/bookings", json=crowded, headers=headers)
    assert response.status_code == 422
    assert response.json()["detail"][0]["rule"] == "capacity"

    past = booking_body(club, booking_date=(club.day - timedelta(weeks=4)).isoformat())
    response = await client.post("/api/v1/bookings", json=past, headers=headers)
    assert response.status_code == 422
    assert response.json()["detail"][0]["rule"] == "past_booking"


async def test_booking_on_closed_day(client, club):
    await client.put(
        f"/api/v1/admin/opening-hours/{(club.day.isoweekday()) % 7}",
        json={"open_time": "08:00", "close_time": "22:00", "is_closed": True},
        headers=auth(club.admin),
    )
    response = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    assert response.status_code == 422
    assert response.json()["detail"][0]["rule"] == "closed_day"


async def test_booking_hidden_from_outsiders(client, club):
    created = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    url = f"/api/v1/bookings/{created.json()['id']}"

    assert (await client.get(url, headers=auth(club.players[3]))).status_code == 404
    assert (await client.get(url, headers=auth(club.admin))).status_code == 200


async def test_admin_books_for_a_player(client, club):
    body = booking_body(club, user_id=club.players[1].id)
    response = await client.post("/api/v1/admin/bookings", json=body, headers=auth(club.admin))
    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == club.players[1].id
    assert data["created_by_admin"] is True
    assert data["payment_status"] == "confirmed"


async def test_cancel_booking(client, club):
    created = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    url = f"/api/v1/bookings/{created.json()['id']}"

    assert (await client.delete(url, headers=auth(club.players[0]))).status_code == 403
    assert (await client.delete(url, headers=auth(club.organizer))).status_code == 204

    again = await client.delete(url, headers=auth(club.organizer))
    assert again.status_code == 422
    assert again.json()["detail"][0]["rule"] == "not_cancellable"


async def test_participant_endpoints(client, club):
    created = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    booking_id = created.json()["id"]

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/participants",
        json={"user_id": club.players[0].id},
        headers=auth(club.organizer),
    )
    assert response.status_code == 201
    participant_id = response.json()["participants"][0]["id"]

    response = await client.patch(
        f"/api/v1/participants/{participant_id}", json={"accept": True}, headers=auth(club.players[0])
    )
    assert response.status_code == 200
    assert response.json()["participants"][0]["status"] == "accepted"

    response = await client.delete(f"/api/v1/participants/{participant_id}", headers=auth(club.organizer))
    assert response.status_code == 204

    booking = await client.get(f"/api/v1/bookings/{booking_id}", headers=auth(club.organizer))
    assert booking.json()["participants"] == []


# --- Payments ---


def _intent_event(event_type: str, obj: dict) -> dict:
    return {"type": event_type, "data": {"object": obj}}


@patch("app.services.payments.create_payment_intent", new_callable=AsyncMock)
@patch("app.services.payments.ensure_stripe_customer", new_callable=AsyncMock, return_value="cus_test")
async def test_partial_then_full_payment(mock_customer, mock_intent, client, club):
    created = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    booking_id = created.json()["id"]
    url = f"/api/v1/bookings/{booking_id}/payment-intent"

    # one share of a four-player court
    mock_intent.return_value = SimpleNamespace(id="pi_share", client_secret="secret_share")
    response = await client.post(url, json={"payment_type": "partial"}, headers=auth(club.organizer))
    assert response.status_code == 200
    assert response.json() == {
        "payment_log_id": response.json()["payment_log_id"],
        "payment_intent_id": "pi_share",
        "client_secret": "secret_share",
        "amount": 500,
    }
    mock_intent.assert_awaited_with(500, "cus_test", booking_id, club.organizer.id, "partial")

    event = _intent_event("payment_intent.succeeded", {"id": "pi_share", "latest_charge": "ch_1"})
    with patch("app.routes.webhooks.construct_webhook_event", return_value=event):
        response = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1"})
        assert response.json() == {"status": "ok"}
        # replay is a no-op
        await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1"})

    booking = (await client.get(f"/api/v1/bookings/{booking_id}", headers=auth(club.organizer))).json()
    assert booking["amount_paid"] == 500
    assert booking["payment_status"] == "partial_payment_completed"

    # the rest in one go
    mock_intent.return_value = SimpleNamespace(id="pi_rest", client_secret="secret_rest")
    response = await client.post(url, json={"payment_type": "full"}, headers=auth(club.organizer))
    assert response.json()["amount"] == 1500

    event = _intent_event("payment_intent.succeeded", {"id": "pi_rest"})
    with patch("app.routes.webhooks.construct_webhook_event", return_value=event):
        await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1"})

    booking = (await client.get(f"/api/v1/bookings/{booking_id}", headers=auth(club.organizer))).json()
    assert booking["amount_paid"] == 2000
    assert booking["payment_status"] == "payment_completed"

    response = await client.post(url, json={"payment_type": "full"}, headers=auth(club.organizer))
    assert response.status_code == 422
    assert response.json()["detail"][0]["rule"] == "already_paid"


@patch("app.services.payments.create_payment_intent", new_callable=AsyncMock)
@patch("app.services.payments.ensure_stripe_customer", new_callable=AsyncMock, return_value="cus_test")
async def test_failed_payment_webhook(mock_customer, mock_intent, client, club, session_factory):
    mock_intent.return_value = SimpleNamespace(id="pi_fail", client_secret="secret")
    created = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    booking_id = created.json()["id"]
    await client.post(
        f"/api/v1/bookings/{booking_id}/payment-intent", json={"payment_type": "full"}, headers=auth(club.organizer)
    )

    event = _intent_event(
        "payment_intent.payment_failed", {"id": "pi_fail", "last_payment_error": {"message": "Card declined"}}
    )
    with patch("app.routes.webhooks.construct_webhook_event", return_value=event):
        await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1"})

    async with session_factory() as db:
        log = (await db.execute(select(PaymentLog).where(PaymentLog.booking_id == booking_id))).scalar_one()
        booking = await db.get(Booking, booking_id)
    assert log.status == PaymentLogStatus.FAILED
    assert log.error_message == "Card declined"
    assert booking.payment_status == "payment_failed"


async def test_webhook_rejects_bad_signature(client):
    with patch("app.routes.webhooks.construct_webhook_event", side_effect=ValueError("bad payload")):
        response = await client.post("/api/v1/webhooks/stripe", content=b"nope", headers={"stripe-signature": "x"})
    assert response.status_code == 400


async def test_webhook_ignores_other_events(client):
    event = _intent_event("customer.created", {"id": "cus_1"})
    with patch("app.routes.webhooks.construct_webhook_event", return_value=event):
        response = await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1"})
    assert response.json() == {"status": "ignored"}


@patch("app.services.payments.create_payment_intent", new_callable=AsyncMock)
@patch("app.services.payments.ensure_stripe_customer", new_callable=AsyncMock, return_value="cus_test")
async def test_paid_cancellation_goes_through_refund_review(mock_customer, mock_intent, client, club):
    mock_intent.return_value = SimpleNamespace(id="pi_paid", client_secret="secret")
    created = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    booking_id = created.json()["id"]
    await client.post(
        f"/api/v1/bookings/{booking_id}/payment-intent", json={"payment_type": "full"}, headers=auth(club.organizer)
    )
    event = _intent_event("payment_intent.succeeded", {"id": "pi_paid"})
    with patch("app.routes.webhooks.construct_webhook_event", return_value=event):
        await client.post("/api/v1/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1"})

    await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth(club.organizer))

    pending = await client.get("/api/v1/admin/refunds", params={"status": "pending"}, headers=auth(club.admin))
    [refund] = pending.json()
    assert refund["amount"] == 2000
    assert refund["cancelled_by"] == "client"

    with patch("app.services.refunds.create_refund", return_value=SimpleNamespace(id="re_test")) as mock_refund:
        response = await client.post(f"/api/v1/admin/refunds/{refund['id']}/approve", headers=auth(club.admin))
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["stripe_refund_id"] == "re_test"
    mock_refund.assert_called_once_with("pi_paid", 2000)

    response = await client.post(
        f"/api/v1/admin/refunds/{refund['id']}/reject", json={"reason": "Trop tard"}, headers=auth(club.admin)
    )
    assert response.status_code == 422
    assert response.json()["detail"][0]["rule"] == "refund_reviewed"


async def test_reject_refund(client, club, session_factory):
    created = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    booking_id = created.json()["id"]
    async with session_factory() as db:
        await db.execute(update(Booking).where(Booking.id == booking_id).values(amount_paid=500))
        await db.commit()
    await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth(club.organizer))

    async with session_factory() as db:
        refund = (await db.execute(select(Refund).where(Refund.booking_id == booking_id))).scalar_one()

    response = await client.post(
        f"/api/v1/admin/refunds/{refund.id}/reject", json={"reason": "Annulation tardive"}, headers=auth(club.admin)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert response.json()["rejection_reason"] == "Annulation tardive"


# --- Admin tools ---


async def test_sweep_endpoint(client, club, session_factory):
    admin = auth(club.admin)
    created = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    booking_id = created.json()["id"]
    async with session_factory() as db:
        stale = datetime.now(UTC) - timedelta(hours=3)
        await db.execute(update(Booking).where(Booking.id == booking_id).values(created_at=stale))
        await db.commit()

    await client.patch("/api/v1/admin/settings", json={"payment_timeout_hours": None}, headers=admin)
    response = await client.post("/api/v1/admin/sweep", headers=admin)
    assert response.status_code == 500
    assert response.json()["detail"][0]["rule"] == "payment_timeout"

    await client.patch("/api/v1/admin/settings", json={"payment_timeout_hours": 2}, headers=admin)
    response = await client.post("/api/v1/admin/sweep", headers=admin)
    assert response.json()["count"] == 1
    assert response.json()["booking_ids"] == [booking_id]

    response = await client.post("/api/v1/admin/sweep", headers=admin)
    assert response.json()["count"] == 0

    booking = await client.get(f"/api/v1/bookings/{booking_id}", headers=admin)
    assert booking.json()["status"] == "cancelled"


async def test_stats_endpoint(client, club):
    await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    response = await client.get(
        "/api/v1/admin/stats",
        params={"start": club.day.isoformat(), "end": club.day.isoformat(), "group_by": "day"},
        headers=auth(club.admin),
    )
    assert response.status_code == 200
    [bucket] = response.json()
    assert bucket["period"] == club.day.isoformat()
    assert bucket["bookings_count"] == 1
    assert bucket["revenue"] == 20.0
    # 14 opening hours in 30-minute slots, two courts
    assert bucket["total_slots"] == 56
    assert round(bucket["occupancy_rate"], 2) == 1.79


async def test_stats_rejects_inverted_range(client, club):
    response = await client.get(
        "/api/v1/admin/stats",
        params={"start": club.day.isoformat(), "end": (club.day - timedelta(days=1)).isoformat()},
        headers=auth(club.admin),
    )
    assert response.status_code == 422
    assert response.json()["detail"][0]["rule"] == "date_range"


async def test_export_csv(client, club):
    await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))
    response = await client.get(
        "/api/v1/admin/bookings/export",
        params={"start": club.day.isoformat(), "end": club.day.isoformat()},
        headers=auth(club.admin),
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]

    lines = response.content.decode("utf-8-sig").splitlines()
    assert len(lines) == 2
    assert "Terrain 1" in lines[1]
    assert "orga;Martin;Alice" in lines[1]
    assert "20,00" in lines[1]


async def test_admin_creates_profile(client, club):
    body = {"username": "nouveau", "first_name": "Nina", "last_name": "Roux", "email": "nina@example.com"}
    response = await client.post("/api/v1/admin/profiles", json=body, headers=auth(club.admin))
    assert response.status_code == 201
    assert response.json()["role"] == "player"

    duplicate = await client.post("/api/v1/admin/profiles", json=body, headers=auth(club.admin))
    assert duplicate.status_code == 409

    found = await client.get("/api/v1/profiles/search", params={"q": "nou"}, headers=auth(club.organizer))
    assert [p["username"] for p in found.json()] == ["nouveau"]


async def test_admin_lists_and_edits_profiles(client, club):
    admin = auth(club.admin)

    response = await client.get("/api/v1/admin/profiles", params={"q": "player"}, headers=admin)
    assert [p["username"] for p in response.json()] == ["player1", "player2", "player3", "player4"]

    url = f"/api/v1/admin/profiles/{club.players[0].id}"
    response = await client.patch(url, json={"phone": "0600000000", "role": "admin"}, headers=admin)
    assert response.status_code == 200
    assert response.json()["phone"] == "0600000000"
    assert response.json()["role"] == "admin"

    # the promoted player now reaches admin routes
    assert (await client.get("/api/v1/admin/settings", headers=auth(club.players[0]))).status_code == 200


async def test_admin_cannot_demote_or_deactivate_themselves(client, club):
    url = f"/api/v1/admin/profiles/{club.admin.id}"
    assert (await client.patch(url, json={"role": "player"}, headers=auth(club.admin))).status_code == 422
    assert (await client.delete(url, headers=auth(club.admin))).status_code == 422


async def test_deactivated_profile_is_kept_but_locked_out(client, club):
    admin = auth(club.admin)
    created = await client.post("/api/v1/bookings", json=booking_body(club), headers=auth(club.organizer))

    response = await client.delete(f"/api/v1/admin/profiles/{club.organizer.id}", headers=admin)
    assert response.status_code == 204

    active = await client.get("/api/v1/admin/profiles", headers=admin)
    assert "orga" not in [p["username"] for p in active.json()]
    everyone = await client.get("/api/v1/admin/profiles", params={"include_inactive": "true"}, headers=admin)
    [orga] = [p for p in everyone.json() if p["username"] == "orga"]
    assert orga["is_active"] is False

    # bookings still point at the profile
    booking = await client.get(f"/api/v1/bookings/{created.json()['id']}", headers=admin)
    assert booking.json()["user_id"] == club.organizer.id
    assert (await client.get("/api/v1/profiles/me", headers=auth(club.organizer))).status_code == 401
