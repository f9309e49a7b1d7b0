"""HTTP routes of the auth service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flask import Blueprint, Flask

from asynctracker.auth.service import AuthService
from asynctracker.common import PayloadValidationFailed, Role, ServiceError
from asynctracker.httpapi import (
    bind_payload,
    install_jwt,
    require_roles,
    response_error,
    response_ok,
)

_Response = tuple[dict[str, Any], int]

_REQUIRED = {"required": True}


@dataclass
class _CreateAccountReq:
    name: str = field(metadata=_REQUIRED)
    password_hash: str = field(metadata=_REQUIRED)
    role: str = field(metadata=_REQUIRED)


@dataclass
class _CreateAccountRes:
    user_id: str


@dataclass
class _ChangeAccountRoleReq:
    user_id: str = field(metadata=_REQUIRED)
    new_role: str = field(metadata=_REQUIRED)


@dataclass
class _LoginReq:
    user_id: str = str()
    password_hash: str = str()


@dataclass
class _LoginRes:
    token: str


class AuthHttpAPI:
    """Binds the auth service to HTTP routes."""

    def __init__(self, service: AuthService, signing_key: str) -> None:
        self.service = service
        self.signing_key = signing_key

    def register_public(self, blueprint: Blueprint) -> None:
        blueprint.add_url_rule("/status", "status", self._status, methods=["GET"])
        blueprint.add_url_rule("/login", "login", self._login, methods=["POST"])

    def register_api(self, blueprint: Blueprint) -> None:
        """Add the token-protected routes, installing the JWT check on the blueprint."""
        install_jwt(blueprint, self.signing_key)
        managers = (Role.MANAGER, Role.ADMIN)
        blueprint.add_url_rule(
            "/create-account",
            "create_account",
            require_roles(*managers)(self._create_account),
            methods=["POST"],
        )
        blueprint.add_url_rule(
            "/change-account-role",
            "change_account_role",
            require_roles(*managers)(self._change_account_role),
            methods=["POST"],
        )

    def _status(self) -> _Response:
        return response_ok(None), 200

    def _login(self) -> _Response:
        try:
            payload = bind_payload(_LoginReq)
        except PayloadValidationFailed as exc:
            return response_error(exc), 400
        try:
            signed = self.service.login(payload.user_id, payload.password_hash)
        except ServiceError as exc:
            return response_error(exc), 403
        return response_ok(_LoginRes(signed)), 200

    def _create_account(self) -> _Response:
        try:
            payload = bind_payload(_CreateAccountReq)
        except PayloadValidationFailed as exc:
            return response_error(exc), 400
        try:
            user_id = self.service.create_account(
                payload.name, payload.password_hash, payload.role
            )
        except Exception as exc:
            return response_error(exc), 403
        return response_ok(_CreateAccountRes(user_id)), 200

    def _change_account_role(self) -> _Response:
        try:
            payload = bind_payload(_ChangeAccountRoleReq)
        except PayloadValidationFailed as exc:
            return response_error(exc), 400
        try:
            self.service.change_account_role(payload.user_id, payload.new_role)
        except Exception as exc:
            return response_error(exc), 403
        return response_ok(None), 200


def create_app(service: AuthService, signing_key: str) -> Flask:
    """Build the auth application: public routes at the root, protected ones under /api."""
    app = Flask(__name__)
    api = AuthHttpAPI(service, signing_key)
    public = Blueprint("public", __name__)
    api.register_public(public)
    protected = Blueprint("api", __name__, url_prefix="/api")
    api.register_api(protected)
    app.register_blueprint(public)
    app.register_blueprint(protected)
    return app