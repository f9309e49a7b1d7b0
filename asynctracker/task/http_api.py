"""HTTP routes of the task service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flask import Blueprint, Flask

from asynctracker.common import (
    InvalidJwtClaimsFormat,
    PayloadValidationFailed,
    Role,
    TokenNotFound,
)
from asynctracker.httpapi import (
    bind_payload,
    current_claims,
    install_jwt,
    require_roles,
    response_error,
    response_ok,
)
from asynctracker.task.models import Task
from asynctracker.task.service import TaskService

_Response = tuple[dict[str, Any], int]


@dataclass
class _GetTasksRes:
    tasks: list[Task]


@dataclass
class _CreateTaskReq:
    description: str = field(metadata={"required": True})


@dataclass
class _CreateTaskRes:
    task_id: str
    user_id: str | None


@dataclass
class _CompleteTaskReq:
    task_id: str = field(metadata={"required": True})


def _claims_or_error():
    try:
        return current_claims(), None
    except TokenNotFound as exc:
        return None, (response_error(exc), 500)
    except InvalidJwtClaimsFormat as exc:
        return None, (response_error(exc), 403)


class TaskHttpAPI:
    """Binds the task service to HTTP routes."""

    def __init__(self, service: TaskService, signing_key: str) -> None:
        self.service = service
        self.signing_key = signing_key

    def register_public(self, blueprint: Blueprint) -> None:
        blueprint.add_url_rule("/status", "status", self._status, methods=["GET"])

    def register_api(self, blueprint: Blueprint) -> None:
        """Add the token-protected routes, installing the JWT check on the blueprint."""
        install_jwt(blueprint, self.signing_key)
        blueprint.add_url_rule(
            "/tasks/<user_id>",
            "get_tasks_for_user",
            require_roles(Role.ADMIN, Role.MANAGER)(self._get_tasks),
            methods=["GET"],
        )
        blueprint.add_url_rule(
            "/tasks/",
            "get_tasks",
            require_roles(Role.DEVELOPER, Role.ADMIN, Role.MANAGER)(self._get_tasks),
            methods=["GET"],
        )
        blueprint.add_url_rule(
            "/create-task",
            "create_task",
            require_roles(Role.DEVELOPER, Role.ADMIN, Role.MANAGER, Role.ACCOUNTANT)(
                self._create_task
            ),
            methods=["POST"],
        )
        blueprint.add_url_rule(
            "/complete-task",
            "complete_task",
            require_roles(Role.DEVELOPER, Role.ADMIN, Role.MANAGER)(self._complete_task),
            methods=["POST"],
        )
        blueprint.add_url_rule(
            "/assign-tasks",
            "assign_tasks",
            require_roles(Role.ADMIN, Role.MANAGER)(self._assign_tasks),
            methods=["POST"],
        )

    def _status(self) -> _Response:
        return response_ok(None), 200

    def _get_tasks(self, user_id: str | None = None) -> _Response:
        claims, failure = _claims_or_error()
        if failure is not None:
            return failure
        if not user_id:
            user_id = claims.user_id
        try:
            tasks = self.service.get_tasks_for_account(user_id)
        except Exception as exc:
            return response_error(exc), 500
        return response_ok(_GetTasksRes(tasks)), 200

    def _create_task(self) -> _Response:
        try:
            payload = bind_payload(_CreateTaskReq)
        except PayloadValidationFailed as exc:
            return response_error(exc), 400
        try:
            task_id, user_id = self.service.create_task(payload.description)
        except Exception as exc:
            return response_error(exc), 500
        return response_ok(_CreateTaskRes(task_id, user_id)), 200

    def _complete_task(self) -> _Response:
        try:
            payload = bind_payload(_CompleteTaskReq)
        except PayloadValidationFailed as exc:
            return response_error(exc), 400
        claims, failure = _claims_or_error()
        if failure is not None:
            return failure
        try:
            self.service.complete_task(payload.task_id, claims.user_id)
        except Exception as exc:
            return response_error(exc), 500
        return response_ok(None), 200

    def _assign_tasks(self) -> _Response:
        try:
            self.service.assign_tasks()
        except Exception as exc:
            return response_error(exc), 500
        return response_ok(None), 200


def create_app(service: TaskService, signing_key: str) -> Flask:
    """Build the task application: public routes at the root, protected ones under /api."""
    app = Flask(__name__)
    api = TaskHttpAPI(service, signing_key)
    public = Blueprint("public", __name__)
    api.register_public(public)
    protected = Blueprint("api", __name__, url_prefix="/api")
    api.register_api(protected)
    app.register_blueprint(public)
    app.register_blueprint(protected)
    return app