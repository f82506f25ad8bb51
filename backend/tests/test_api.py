"""
HTTP API tests.

Verifies:
- Requests without a known, active actor return 401
- Privileged-area routes return 403 for other areas
- Domain errors map to their status codes with a JSON body
"""

from datetime import datetime, timezone

import pytest

from prodtrack.services import transfer_service, unit_service

from conftest import actor_headers


# =============================================================================
# ACTOR RESOLUTION (401)
# =============================================================================


class TestActorRequired:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/units"),
            ("POST", "/api/units"),
            ("GET", "/api/units/1"),
            ("POST", "/api/units/1/pause"),
            ("POST", "/api/transfers"),
            ("GET", "/api/transfers/pending"),
            ("POST", "/api/transfers/1/accept"),
            ("GET", "/api/units/1/timers"),
            ("PUT", "/api/units/1/timers/corte"),
            ("GET", "/api/notifications"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_user(self, client, db_session):
        resp = client.get("/api/units", headers={"X-User-Id": "999"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("raw", ["admin", "\u00b2", "1\u00b2", "-1"])
    def test_malformed_header(self, client, db_session, raw):
        resp = client.get("/api/units", headers={"X-User-Id": raw})
        assert resp.status_code == 401

    def test_inactive_user(self, client, make_user):
        user = make_user("corte", "retired", is_active=False)
        resp = client.get("/api/units", headers=actor_headers(user))
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# UNITS
# =============================================================================


class TestUnitRoutes:

    def test_create_order(self, client, corte_user):
        resp = client.post(
            "/api/units",
            json={"kind": "order", "total_pieces": 40, "initial_area": "corte", "title": "Aprons"},
            headers=actor_headers(corte_user),
        )

        assert resp.status_code == 201
        assert resp.json["unit"]["status"] == "active"
        assert resp.json["unit"]["created_by_user_id"] == corte_user.id
        assert [(r["area"], r["pieces"]) for r in resp.json["area_records"]] == [("corte", 40)]

    @pytest.mark.parametrize("pieces", [0, -3, 2.5, "1e3", True])
    def test_create_rejects_bad_pieces(self, client, corte_user, pieces):
        resp = client.post(
            "/api/units",
            json={"kind": "order", "total_pieces": pieces},
            headers=actor_headers(corte_user),
        )
        assert resp.status_code == 400
        assert resp.json["type"] == "ValidationError"

    def test_create_requires_fields(self, client, corte_user):
        resp = client.post("/api/units", json={"kind": "order"}, headers=actor_headers(corte_user))
        assert resp.status_code == 400

    def test_unknown_unit(self, client, corte_user):
        resp = client.get("/api/units/424242", headers=actor_headers(corte_user))
        assert resp.status_code == 404
        assert resp.json["type"] == "NotFound"

    def test_list_by_area(self, client, order, bordado_user):
        resp = client.get("/api/units?area=corte", headers=actor_headers(bordado_user))
        assert resp.status_code == 200
        assert [u["id"] for u in resp.json["units"]] == [order.id]

        resp = client.get("/api/units?area=bordado", headers=actor_headers(bordado_user))
        assert resp.json["units"] == []

    def test_get_unit_lists_pending_transfers(self, client, order, corte_user):
        transfer = transfer_service.propose_transfer(
            unit_id=order.id, from_area="corte", to_area="bordado", pieces=5, created_by=corte_user.id,
        )

        resp = client.get(f"/api/units/{order.id}", headers=actor_headers(corte_user))

        assert resp.status_code == 200
        assert [t["id"] for t in resp.json["pending_transfers"]] == [transfer.id]

    def test_pause_reason_min_length(self, client, order, corte_user):
        resp = client.post(
            f"/api/units/{order.id}/pause", json={"reason": "broken"}, headers=actor_headers(corte_user)
        )
        assert resp.status_code == 400

        resp = client.post(
            f"/api/units/{order.id}/pause",
            json={"reason": "Needle machine broken"},
            headers=actor_headers(corte_user),
        )
        assert resp.status_code == 200
        assert resp.json["unit"]["status"] == "paused"

    def test_pause_with_partial_custody(self, client, order, corte_user, bordado_user):
        transfer = transfer_service.propose_transfer(
            unit_id=order.id, from_area="corte", to_area="bordado", pieces=60, created_by=corte_user.id,
        )
        transfer_service.accept_transfer(transfer.id, bordado_user.id)

        resp = client.post(
            f"/api/units/{order.id}/pause",
            json={"reason": "Needle machine broken"},
            headers=actor_headers(bordado_user),
        )

        assert resp.status_code == 409
        assert resp.json["type"] == "InsufficientCustody"

    def test_delete_requires_privileged_area(self, client, order, corte_user, admin_user):
        resp = client.delete(f"/api/units/{order.id}", headers=actor_headers(corte_user))
        assert resp.status_code == 403

        resp = client.delete(f"/api/units/{order.id}", headers=actor_headers(admin_user))
        assert resp.status_code == 200
        assert resp.json["unit"]["status"] == "deleted"

    def test_complete_requires_privileged_area(self, client, order, corte_user, admin_user):
        resp = client.post(f"/api/units/{order.id}/complete", json={}, headers=actor_headers(corte_user))
        assert resp.status_code == 403

        resp = client.post(f"/api/units/{order.id}/complete", json={}, headers=actor_headers(admin_user))
        assert resp.status_code == 200
        assert resp.json["unit"]["status"] == "completed"

    def test_reposition_flow(self, client, reposition, corte_user, admin_user):
        resp = client.post(
            f"/api/units/{reposition.id}/request-completion",
            json={"notes": "Ready"},
            headers=actor_headers(corte_user),
        )
        assert resp.status_code == 202
        assert resp.json["unit"]["status"] == "pendiente"

        resp = client.post(
            f"/api/units/{reposition.id}/approve",
            json={"action": "aprobado"},
            headers=actor_headers(admin_user),
        )
        assert resp.status_code == 200
        assert resp.json["unit"]["status"] == "aprobado"

        resp = client.post(f"/api/units/{reposition.id}/cancel", json={}, headers=actor_headers(admin_user))
        assert resp.status_code == 400

        resp = client.post(
            f"/api/units/{reposition.id}/cancel",
            json={"reason": "Client withdrew"},
            headers=actor_headers(admin_user),
        )
        assert resp.status_code == 200
        assert resp.json["unit"]["status"] == "cancelado"

    def test_create_after_explicit_folio(self, client, corte_user, monkeypatch):
        monkeypatch.setattr(unit_service, "utcnow", lambda: datetime(2025, 1, 15, tzinfo=timezone.utc))
        resp = client.post(
            "/api/units",
            json={"kind": "order", "total_pieces": 5, "folio": "P-2501-0001"},
            headers=actor_headers(corte_user),
        )
        assert resp.status_code == 201

        resp = client.post(
            "/api/units", json={"kind": "order", "total_pieces": 5}, headers=actor_headers(corte_user)
        )
        assert resp.status_code == 201
        assert resp.json["unit"]["folio"] == "P-2501-0002"

    def test_material_hold(self, client, reposition, corte_user, make_user):
        warehouse = make_user("almacen", "alm")

        resp = client.post(f"/api/units/{reposition.id}/hold", json={}, headers=actor_headers(warehouse))
        assert resp.status_code == 400

        resp = client.post(
            f"/api/units/{reposition.id}/hold",
            json={"reason": "Fabric out of stock"},
            headers=actor_headers(corte_user),
        )
        assert resp.status_code == 403

        resp = client.post(
            f"/api/units/{reposition.id}/hold",
            json={"reason": "Fabric out of stock"},
            headers=actor_headers(warehouse),
        )
        assert resp.status_code == 200
        assert resp.json["unit"]["status"] == "pendiente"
        assert resp.json["unit"]["is_on_hold"] is True
        assert resp.json["unit"]["hold_reason"] == "Fabric out of stock"
        assert resp.json["unit"]["held_by_user_id"] == warehouse.id

        resp = client.post(f"/api/units/{reposition.id}/release", headers=actor_headers(warehouse))
        assert resp.status_code == 200
        assert resp.json["unit"]["is_on_hold"] is False
        assert resp.json["unit"]["released_by_user_id"] == warehouse.id

        resp = client.post(f"/api/units/{reposition.id}/release", headers=actor_headers(warehouse))
        assert resp.status_code == 409
        assert resp.json["type"] == "InvalidState"

    def test_history(self, client, order, corte_user):
        resp = client.get(f"/api/units/{order.id}/history", headers=actor_headers(corte_user))
        assert resp.status_code == 200
        assert [e["action"] for e in resp.json["history"]] == ["created"]
        assert resp.json["history"][0]["user_name"] == corte_user.name


# =============================================================================
# TRANSFERS
# =============================================================================


class TestTransferRoutes:

    def test_full_transfer_flow(self, client, order, corte_user, bordado_user):
        resp = client.post(
            "/api/transfers",
            json={"unit_id": order.id, "to_area": "bordado", "pieces": 30},
            headers=actor_headers(corte_user),
        )
        assert resp.status_code == 201
        transfer = resp.json
        assert transfer["from_area"] == "corte"
        assert transfer["status"] == "pending"

        resp = client.get("/api/transfers/pending", headers=actor_headers(bordado_user))
        assert [t["id"] for t in resp.json["transfers"]] == [transfer["id"]]

        resp = client.post(f"/api/transfers/{transfer['id']}/accept", headers=actor_headers(bordado_user))
        assert resp.status_code == 200
        assert resp.json["status"] == "accepted"

        resp = client.get(f"/api/units/{order.id}/pieces", headers=actor_headers(bordado_user))
        pieces = {r["area"]: r["pieces"] for r in resp.json["area_records"]}
        assert pieces == {"corte": 70, "bordado": 30}
        assert resp.json["current_area"] is None

    def test_only_destination_can_accept(self, client, order, corte_user, ensamble_user):
        transfer = transfer_service.propose_transfer(
            unit_id=order.id, from_area="corte", to_area="bordado", pieces=5, created_by=corte_user.id,
        )

        resp = client.post(f"/api/transfers/{transfer.id}/accept", headers=actor_headers(ensamble_user))
        assert resp.status_code == 403

        resp = client.post(f"/api/transfers/{transfer.id}/reject", headers=actor_headers(ensamble_user))
        assert resp.status_code == 403

    def test_propose_more_than_held(self, client, order, corte_user):
        resp = client.post(
            "/api/transfers",
            json={"unit_id": order.id, "to_area": "bordado", "pieces": 101},
            headers=actor_headers(corte_user),
        )
        assert resp.status_code == 409
        assert resp.json["type"] == "InsufficientCustody"

    def test_accept_processed_transfer(self, client, order, corte_user, bordado_user):
        transfer = transfer_service.propose_transfer(
            unit_id=order.id, from_area="corte", to_area="bordado", pieces=5, created_by=corte_user.id,
        )

        resp = client.post(f"/api/transfers/{transfer.id}/reject", headers=actor_headers(bordado_user))
        assert resp.status_code == 200

        resp = client.post(f"/api/transfers/{transfer.id}/accept", headers=actor_headers(bordado_user))
        assert resp.status_code == 409
        assert resp.json["type"] == "InvalidState"


# =============================================================================
# TIMERS AND NOTIFICATIONS
# =============================================================================


class TestTimerRoutes:

    def test_manual_timer_write_once(self, client, order, corte_user):
        body = {
            "start_date": "2025-03-01", "start_time": "08:00",
            "end_date": "2025-03-01", "end_time": "09:15",
        }

        resp = client.put(f"/api/units/{order.id}/timers/corte", json=body, headers=actor_headers(corte_user))
        assert resp.status_code == 201
        assert resp.json["elapsed_minutes"] == 75

        resp = client.put(f"/api/units/{order.id}/timers/corte", json=body, headers=actor_headers(corte_user))
        assert resp.status_code == 409
        assert resp.json["type"] == "DuplicateTimer"

        resp = client.get(f"/api/units/{order.id}/timers", headers=actor_headers(corte_user))
        assert resp.json["summary"]["total_formatted"] == "1h 15m"

    def test_live_timer(self, client, order, corte_user):
        resp = client.post(f"/api/units/{order.id}/timers/corte/start", headers=actor_headers(corte_user))
        assert resp.status_code == 201
        assert resp.json["is_running"] is True

        resp = client.post(f"/api/units/{order.id}/timers/corte/stop", headers=actor_headers(corte_user))
        assert resp.status_code == 200
        assert resp.json["is_running"] is False

    def test_closed_unit_rejects_timers(self, client, order, corte_user, admin_user):
        client.delete(f"/api/units/{order.id}", headers=actor_headers(admin_user))

        resp = client.post(f"/api/units/{order.id}/timers/corte/start", headers=actor_headers(corte_user))
        assert resp.status_code == 409
        assert resp.json["type"] == "InvalidState"

    def test_missing_timer(self, client, order, corte_user):
        resp = client.get(f"/api/units/{order.id}/timers/plancha", headers=actor_headers(corte_user))
        assert resp.status_code == 404


class TestNotificationRoutes:

    def test_inbox(self, client, order, corte_user, bordado_user):
        transfer_service.propose_transfer(
            unit_id=order.id, from_area="corte", to_area="bordado", pieces=5, created_by=corte_user.id,
        )

        resp = client.get("/api/notifications?unread=1", headers=actor_headers(bordado_user))
        assert resp.status_code == 200
        items = resp.json["notifications"]
        assert [n["kind"] for n in items] == ["transfer_created"]
        assert items[0]["unit_id"] == order.id

        resp = client.post(f"/api/notifications/{items[0]['id']}/read", headers=actor_headers(bordado_user))
        assert resp.status_code == 200
        assert resp.json["is_read"] is True

        resp = client.get("/api/notifications?unread=1", headers=actor_headers(bordado_user))
        assert resp.json["notifications"] == []

    def test_cannot_read_someone_elses(self, client, order, corte_user, bordado_user):
        transfer_service.propose_transfer(
            unit_id=order.id, from_area="corte", to_area="bordado", pieces=5, created_by=corte_user.id,
        )
        resp = client.get("/api/notifications", headers=actor_headers(bordado_user))
        notification_id = resp.json["notifications"][0]["id"]

        resp = client.post(f"/api/notifications/{notification_id}/read", headers=actor_headers(corte_user))
        assert resp.status_code == 404
