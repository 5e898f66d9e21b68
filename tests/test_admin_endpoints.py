"""Tests for admin endpoints."""

from datetime import timedelta
from uuid import uuid4

from fastapi.testclient import TestClient

from consistency_engine.api.app import create_app
from consistency_engine.services.freezes import activate
from tests.conftest import NOW

HEADERS = {"X-Admin-Token": "admin-token"}


def test_admin_requires_token(container) -> None:
    client = TestClient(create_app(container))

    missing = client.get("/admin/health")
    wrong = client.get("/admin/health", headers={"X-Admin-Token": "nope"})
    ok = client.get("/admin/health", headers=HEADERS)

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.status_code == 200


def test_admin_recompute_squad(container, activity_repository) -> None:
    client = TestClient(create_app(container))
    owner_id = uuid4()
    squad = container.squad_service.create_squad(owner_id, "owner")
    activity_repository.add_days_ago(owner_id, 0, 1)

    response = client.post(f"/admin/squads/{squad.id}/recompute", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"squad_id": str(squad.id), "updated": 1}
    assert container.squad_service.get_squad(squad.id).members[0].streak == 2


def test_admin_recompute_missing_squad(container) -> None:
    client = TestClient(create_app(container))

    response = client.post(f"/admin/squads/{uuid4()}/recompute", headers=HEADERS)

    assert response.status_code == 404


def test_admin_prune_freezes(container, freeze_repository) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()
    freeze_repository.save_freezes(
        user_id,
        [
            activate(user_id, 1, NOW - timedelta(days=3)),
            activate(user_id, 2, NOW),
        ],
    )

    response = client.post(f"/admin/users/{user_id}/freezes/prune", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["removed"] == 1
    assert len(freeze_repository.freezes) == 1


def test_admin_grant_freeze(container) -> None:
    client = TestClient(create_app(container))
    user_id = uuid4()

    granted = client.post(
        f"/admin/users/{user_id}/freezes", params={"days": 2}, headers=HEADERS
    )
    invalid = client.post(
        f"/admin/users/{user_id}/freezes", params={"days": 0}, headers=HEADERS
    )

    assert granted.status_code == 200
    assert granted.json()["days_remaining"] == 2
    assert invalid.status_code == 422
    assert container.freeze_service.remaining_days(user_id) == 2
