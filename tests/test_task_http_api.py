import random

import jwt
import pytest

from asynctracker.common import Role
from asynctracker.database import Database
from asynctracker.messaging import InMemoryBroker
from asynctracker.task.http_api import create_app
from asynctracker.task.service import TaskEventWriter, TaskService, create_schema

SIGNING_KEY = "secret"


@pytest.fixture
def service():
    db = Database(":memory:")
    create_schema(db)
    svc = TaskService(db, TaskEventWriter(InMemoryBroker()), random.Random(2))
    yield svc
    db.close()


@pytest.fixture
def client(service):
    return create_app(service, SIGNING_KEY).test_client()


def headers(user_id, role):
    encoded = jwt.encode({"user_id": user_id, "role": str(role)}, SIGNING_KEY, algorithm="HS256")
    return {"Authorization": "Bearer " + encoded}


def test_status(client):
    response = client.get("/status")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "data": None}


def test_missing_token_is_forbidden(client):
    response = client.post("/api/create-task", json={"description": "x"})
    assert response.status_code == 403
    assert response.get_json()["status"] == "error"


def test_create_task_without_developers(client):
    response = client.post(
        "/api/create-task", json={"description": "x"}, headers=headers("acc-1", Role.ACCOUNTANT)
    )
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["user_id"] is None
    assert len(data["task_id"]) == 36


def test_create_task_requires_description(client):
    response = client.post("/api/create-task", json={}, headers=headers("dev-1", Role.DEVELOPER))
    assert response.status_code == 400
    assert response.get_json() == {"status": "error", "error": "payload validation failed"}


def test_developer_sees_own_tasks(client, service):
    service.upsert_account_role("dev-1", True, Role.DEVELOPER)
    created = client.post(
        "/api/create-task", json={"description": "job"}, headers=headers("dev-1", Role.DEVELOPER)
    ).get_json()["data"]
    response = client.get("/api/tasks/", headers=headers("dev-1", Role.DEVELOPER))
    assert response.status_code == 200
    tasks = response.get_json()["data"]["tasks"]
    assert [t["task_id"] for t in tasks] == [created["task_id"]]
    assert tasks[0]["description"] == "job"


def test_developer_cannot_read_other_users_tasks(client):
    response = client.get("/api/tasks/dev-2", headers=headers("dev-1", Role.DEVELOPER))
    assert response.status_code == 403
    assert response.get_json()["error"] == "insufficient privileges"


def test_manager_reads_developer_tasks(client, service):
    service.upsert_account_role("dev-1", True, Role.DEVELOPER)
    task_id, _ = service.create_task("job")
    response = client.get("/api/tasks/dev-1", headers=headers("mgr-1", Role.MANAGER))
    assert response.status_code == 200
    assert [t["task_id"] for t in response.get_json()["data"]["tasks"]] == [task_id]


def test_complete_task(client, service):
    service.upsert_account_role("dev-1", True, Role.DEVELOPER)
    task_id, _ = service.create_task("job")
    response = client.post(
        "/api/complete-task", json={"task_id": task_id}, headers=headers("dev-1", Role.DEVELOPER)
    )
    assert response.status_code == 200
    assert service.get_tasks_for_account("dev-1")[0].completed is True


def test_complete_unknown_task(client):
    response = client.post(
        "/api/complete-task", json={"task_id": "missing"}, headers=headers("dev-1", Role.DEVELOPER)
    )
    assert response.status_code == 500
    assert response.get_json()["error"] == "task not found"


def test_assign_tasks_roles_and_errors(client):
    forbidden = client.post("/api/assign-tasks", headers=headers("dev-1", Role.DEVELOPER))
    assert forbidden.status_code == 403
    failed = client.post("/api/assign-tasks", headers=headers("mgr-1", Role.MANAGER))
    assert failed.status_code == 500
    assert failed.get_json()["error"] == "no developers available"


def test_assign_tasks_success(client, service):
    task_id, _ = service.create_task("job")
    service.upsert_account_role("dev-1", True, Role.DEVELOPER)
    response = client.post("/api/assign-tasks", headers=headers("adm-1", Role.ADMIN))
    assert response.status_code == 200
    assert [t.task_id for t in service.get_tasks_for_account("dev-1")] == [task_id]