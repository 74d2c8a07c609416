"""
HTTP surface of the swap engine: /api/v1/swaps plus health and metrics.

Errors are returned as problem+json with the domain code, kind and
message category.
"""

from unittest.mock import MagicMock

import pytest

from nestswap.api.dependencies import get_swap_service
from nestswap.core.config import settings
from nestswap.core.exceptions import TransientException

SWAPS = "/api/v1/swaps"


def _as(user):
    return {"X-User-ID": user.id}


def _create_body(owners, start, end, **overrides):
    body = {
        "requested_user_id": owners["u2"].id,
        "requester_listing_id": owners["l1"].id,
        "requested_listing_id": owners["l2"].id,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
    }
    body.update(overrides)
    return body


class TestCreateSwapRoute:
    def test_requires_acting_user(self, client, owners, at_day):
        r = client.post(SWAPS, json=_create_body(owners, at_day(1), at_day(10)))
        assert r.status_code == 401
        assert r.json()["code"] == "NOT_AUTHENTICATED"

    def test_requires_membership(self, client, make_user, make_listing, owners, at_day):
        lapsed = make_user(name="Lapsed", subscription_status="past_due")
        listing = make_listing(lapsed)
        body = _create_body(owners, at_day(1), at_day(10), requester_listing_id=listing.id)

        r = client.post(SWAPS, json=body, headers=_as(lapsed))

        assert r.status_code == 402
        assert r.headers["content-type"].startswith("application/problem+json")
        assert r.json()["code"] == "SUB_REQUIRED"
        assert r.json()["category"] == "payment_required"

    def test_creates_pending_swap_and_notifies(self, client, owners, notifier, at_day):
        r = client.post(
            SWAPS,
            json=_create_body(owners, at_day(1), at_day(10), notes="Dog friendly?"),
            headers=_as(owners["u1"]),
        )

        assert r.status_code == 201
        data = r.json()
        assert data["status"] == "pending"
        assert data["requester_id"] == owners["u1"].id
        assert data["duration_days"] == 9
        assert data["notes"] == "Dog friendly?"
        assert data["requested_listing"]["title"] == "Listing 2"
        assert data["conflicts"] == []
        notifier.notify.assert_called_once()
        assert notifier.notify.call_args[0][0] == owners["u2"].id

    def test_reports_existing_accepted_conflicts(
        self, client, owners, make_swap, swap_service, at_day
    ):
        accepted = make_swap(owners["l3"], owners["l2"], 5, 15)
        swap_service.accept_swap(accepted.id, owners["u2"].id)

        r = client.post(
            SWAPS, json=_create_body(owners, at_day(1), at_day(10)), headers=_as(owners["u1"])
        )

        assert r.status_code == 201
        assert [c["swap_id"] for c in r.json()["conflicts"]] == [accepted.id]

    def test_self_swap_is_invalid_input(self, client, owners, at_day):
        body = _create_body(
            owners, at_day(1), at_day(10), requested_user_id=owners["u1"].id
        )
        r = client.post(SWAPS, json=body, headers=_as(owners["u1"]))

        assert r.status_code == 400
        assert r.json()["code"] == "INVALID_INPUT"
        assert r.json()["errors"]["reason"] == "self_swap"

    def test_unowned_listing_is_forbidden(self, client, owners, at_day):
        body = _create_body(owners, at_day(1), at_day(10), requester_listing_id=owners["l3"].id)
        r = client.post(SWAPS, json=body, headers=_as(owners["u1"]))
        assert r.status_code == 403

    def test_unknown_fields_rejected(self, client, owners, at_day):
        body = _create_body(owners, at_day(1), at_day(10), status="accepted")
        r = client.post(SWAPS, json=body, headers=_as(owners["u1"]))
        assert r.status_code == 422
        assert r.json()["code"] == "validation_error"


class TestReadSwapRoutes:
    def test_parties_can_read(self, client, owners, make_swap):
        swap = make_swap(owners["l1"], owners["l2"])
        for user in (owners["u1"], owners["u2"]):
            r = client.get(f"{SWAPS}/{swap.id}", headers=_as(user))
            assert r.status_code == 200
            assert r.json()["id"] == swap.id

    def test_non_party_gets_not_found(self, client, owners, make_swap):
        swap = make_swap(owners["l1"], owners["l2"])
        r = client.get(f"{SWAPS}/{swap.id}", headers=_as(owners["u3"]))
        assert r.status_code == 404
        assert r.json()["code"] == "SWAP_NOT_FOUND"

    def test_malformed_id_rejected(self, client, owners):
        r = client.get(f"{SWAPS}/not-a-ulid", headers=_as(owners["u1"]))
        assert r.status_code == 422

    def test_list_by_direction(self, client, owners, make_swap):
        make_swap(owners["l1"], owners["l2"])
        make_swap(owners["l2"], owners["l3"], 20, 25)

        incoming = client.get(
            SWAPS, params={"direction": "incoming"}, headers=_as(owners["u2"])
        ).json()
        everything = client.get(SWAPS, headers=_as(owners["u2"])).json()

        assert incoming["total"] == 1
        assert incoming["swaps"][0]["requester_id"] == owners["u1"].id
        assert everything["total"] == 2

    def test_list_by_status(self, client, owners, make_swap, swap_service):
        first = make_swap(owners["l1"], owners["l2"])
        make_swap(owners["l3"], owners["l2"], 20, 25)
        swap_service.decline_swap(first.id, owners["u2"].id)

        r = client.get(SWAPS, params={"status": "declined"}, headers=_as(owners["u2"]))

        assert [s["id"] for s in r.json()["swaps"]] == [first.id]

    def test_conflict_check(self, client, owners, make_swap, swap_service, at_day):
        accepted = make_swap(owners["l1"], owners["l2"], 1, 10)
        swap_service.accept_swap(accepted.id, owners["u2"].id)
        params = {
            "listing_a": owners["l3"].id,
            "listing_b": owners["l2"].id,
            "start_date": at_day(5).isoformat(),
            "end_date": at_day(15).isoformat(),
        }

        r = client.get(f"{SWAPS}/conflicts", params=params, headers=_as(owners["u3"]))

        assert r.status_code == 200
        assert r.json()["has_conflicts"] is True
        assert r.json()["conflicts"][0]["swap_id"] == accepted.id

        params["start_date"] = at_day(10).isoformat()
        r = client.get(f"{SWAPS}/conflicts", params=params, headers=_as(owners["u3"]))
        assert r.json() == {"has_conflicts": False, "conflicts": []}


class TestStatusRoute:
    def test_accept(self, client, owners, make_swap):
        swap = make_swap(owners["l1"], owners["l2"])
        r = client.patch(
            f"{SWAPS}/{swap.id}/status", json={"status": "accepted"}, headers=_as(owners["u2"])
        )
        assert r.status_code == 200
        assert r.json()["status"] == "accepted"

    def test_requester_cannot_accept(self, client, owners, make_swap):
        swap = make_swap(owners["l1"], owners["l2"])
        r = client.patch(
            f"{SWAPS}/{swap.id}/status", json={"status": "accepted"}, headers=_as(owners["u1"])
        )
        assert r.status_code == 403
        assert r.json()["category"] == "forbidden"

    def test_accept_conflict(self, client, owners, make_swap, swap_service):
        first = make_swap(owners["l1"], owners["l2"], 1, 10)
        second = make_swap(owners["l3"], owners["l2"], 5, 15)
        swap_service.accept_swap(first.id, owners["u2"].id)

        r = client.patch(
            f"{SWAPS}/{second.id}/status", json={"status": "accepted"}, headers=_as(owners["u2"])
        )

        assert r.status_code == 409
        body = r.json()
        assert body["code"] == "SWAP_CONFLICT"
        assert body["category"] == "unavailable"
        assert body["errors"]["conflicting_swap_ids"] == [first.id]

    def test_terminal_swap_is_unavailable(self, client, owners, make_swap, swap_service):
        swap = make_swap(owners["l1"], owners["l2"])
        swap_service.accept_swap(swap.id, owners["u2"].id)

        r = client.patch(
            f"{SWAPS}/{swap.id}/status", json={"status": "declined"}, headers=_as(owners["u2"])
        )

        assert r.status_code == 409
        assert r.json()["code"] == "SWAP_INVALID_STATE"
        assert r.json()["category"] == "unavailable"

    def test_accept_requires_membership_but_decline_does_not(
        self, client, owners, make_user, make_listing, make_swap
    ):
        lapsed = make_user(name="Lapsed", subscription_status="canceled")
        listing = make_listing(lapsed)
        swap = make_swap(owners["l1"], listing)

        r = client.patch(
            f"{SWAPS}/{swap.id}/status", json={"status": "accepted"}, headers=_as(lapsed)
        )
        assert r.status_code == 402

        r = client.patch(
            f"{SWAPS}/{swap.id}/status", json={"status": "declined"}, headers=_as(lapsed)
        )
        assert r.status_code == 200
        assert r.json()["status"] == "declined"

    @pytest.mark.parametrize("target", ["pending", "approved", ""])
    def test_unknown_target_rejected(self, client, owners, make_swap, target):
        swap = make_swap(owners["l1"], owners["l2"])
        r = client.patch(
            f"{SWAPS}/{swap.id}/status", json={"status": target}, headers=_as(owners["u2"])
        )
        assert r.status_code == 422

    def test_transient_failure_is_retried_then_503(self, client, owners, make_swap, monkeypatch):
        monkeypatch.setattr("nestswap.database.time.sleep", lambda _s: None)
        swap = make_swap(owners["l1"], owners["l2"])
        service = MagicMock()
        service.transition_swap.side_effect = TransientException()
        client.app.dependency_overrides[get_swap_service] = lambda: service

        r = client.patch(
            f"{SWAPS}/{swap.id}/status", json={"status": "cancelled"}, headers=_as(owners["u1"])
        )

        assert r.status_code == 503
        assert r.headers["Retry-After"] == "2"
        assert r.json()["category"] == "retry"
        assert service.transition_swap.call_count == settings.swap_transition_max_attempts


class TestOperationalRoutes:
    def test_health(self, client):
        r = client.get("/api/v1/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"
        assert r.json()["database"] is True
        assert r.headers["Cache-Control"] == "no-store"

    def test_metrics_exposes_swap_counters(self, client, owners, make_swap):
        swap = make_swap(owners["l1"], owners["l2"])
        client.patch(
            f"{SWAPS}/{swap.id}/status", json={"status": "accepted"}, headers=_as(owners["u2"])
        )

        r = client.get("/metrics")

        assert r.status_code == 200
        assert "nestswap_swap_transitions_total" in r.text
        assert "nestswap_prometheus_scrapes_total" in r.text
