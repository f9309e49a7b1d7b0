"""HTTP helpers shared by the services: response envelopes, JWT checks and payload binding."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import jwt
from flask import Blueprint, g, request

from asynctracker.common import (
    InsufficientPrivileges,
    InvalidJwtClaimsFormat,
    JwtCustomClaims,
    ServiceError,
    TokenNotFound,
)
from asynctracker.messaging import Message, to_jsonable, validate_payload

_log = logging.getLogger(__name__)

P = TypeVar("P")

_CLAIMS_KEY = "jwt_claims"
_MISSING_JWT = "missing or malformed jwt"
_INVALID_JWT = "invalid or expired jwt"


def response_ok(data: Any) -> dict[str, Any]:
    """Wrap data in the success envelope."""
    return {"status": "ok", "data": to_jsonable(data)}


def response_error(err: BaseException | str) -> dict[str, Any]:
    """Wrap an error in the failure envelope."""
    return {"status": "error", "error": str(err)}


def decode_token(token: str, signing_key: str) -> JwtCustomClaims:
    """Verify an HS256 token and return its claims.

    Raises ServiceError for a bad signature or expired token and
    InvalidJwtClaimsFormat when the claims do not have the expected shape.
    """
    try:
        body = jwt.decode(
            token,
            signing_key,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )
    except jwt.InvalidTokenError as exc:
        raise ServiceError(_INVALID_JWT) from exc
    return JwtCustomClaims.from_dict(body)


def install_jwt(blueprint: Blueprint, signing_key: str) -> None:
    """Require a valid bearer token on every route of the blueprint."""

    def authenticate() -> tuple[dict[str, Any], int] | None:
        header = request.headers.get("Authorization", str())
        scheme, _, rest = header.partition(" ")
        presented = rest.strip()
        if scheme.lower() != "bearer" or not presented:
            return response_error(_MISSING_JWT), 403
        try:
            claims = decode_token(presented, signing_key)
        except ServiceError as exc:
            return response_error(exc), 403
        setattr(g, _CLAIMS_KEY, claims)
        return None

    blueprint.before_request(authenticate)


def current_claims() -> JwtCustomClaims:
    """Return the claims of the request's token.

    Raises TokenNotFound when no token was checked for this request.
    """
    claims = g.get(_CLAIMS_KEY)
    if claims is None:
        _log.error("could not find jwt token in request context")
        raise TokenNotFound()
    if not isinstance(claims, JwtCustomClaims):
        _log.error("cannot read jwt claims from request context")
        raise InvalidJwtClaimsFormat()
    return claims


def require_roles(*roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate a view so that only tokens carrying one of the roles reach it."""
    allowed = {str(role) for role in roles}

    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                claims = current_claims()
            except TokenNotFound as exc:
                return response_error(exc), 500
            except InvalidJwtClaimsFormat as exc:
                return response_error(exc), 403
            if claims.role not in allowed:
                return response_error(InsufficientPrivileges()), 403
            return view(*args, **kwargs)

        return wrapper

    return decorator


def bind_payload(payload_type: type[P]) -> P:
    """Decode the request's JSON body into a dataclass.

    Raises PayloadValidationFailed when the body is malformed or a required
    field is missing.
    """
    body = request.get_data() or b"{}"
    return validate_payload(Message(key=b"", value=body), payload_type)