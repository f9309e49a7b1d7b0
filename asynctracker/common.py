"""Roles, topic names, JWT claims and error types shared by the services."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    """Account roles known to every service."""

    DEVELOPER = "developer"
    ADMIN = "admin"
    MANAGER = "manager"
    ACCOUNTANT = "accountant"


KAFKA_TOPIC_TASK = "Task"
KAFKA_TOPIC_ACCOUNT = "Account"
AUTH_CONSUMER_GROUP_ID = "consumer-group-auth"
TASK_CONSUMER_GROUP_ID = "consumer-group-task"


class ServiceError(Exception):
    """Base class for errors reported by the services."""

    message = "service error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class PayloadValidationFailed(ServiceError):
    message = "payload validation failed"


class InvalidCredentials(ServiceError):
    message = "invalid credentials"


class InvalidJwtClaimsFormat(ServiceError):
    message = "invalid jwt claims format"


class InsufficientPrivileges(ServiceError):
    message = "insufficient privileges"


class TokenNotFound(ServiceError):
    message = "token not found in request context"


class AccountNotFound(ServiceError):
    message = "account not found"


class TaskNotFound(ServiceError):
    message = "task not found"


class NoDevelopersAvailable(ServiceError):
    message = "no developers available"


class UnknownUser(ServiceError):
    message = "unknown user"


_TEXT_CLAIMS = ("iss", "sub", "jti")
_NUMERIC_CLAIMS = ("exp", "nbf", "iat")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class JwtCustomClaims:
    """Claims carried in the service tokens: user id, role and registered claims."""

    user_id: str
    role: str
    iss: str | None = None
    sub: str | None = None
    aud: str | list[str] | None = None
    exp: int | float | None = None
    nbf: int | float | None = None
    iat: int | float | None = None
    jti: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the claims as a JSON-ready mapping, leaving out unset ones."""
        data: dict[str, Any] = {"user_id": str(self.user_id), "role": str(self.role)}
        for name in (*_TEXT_CLAIMS, "aud", *_NUMERIC_CLAIMS):
            value = getattr(self, name)
            if value is None:
                continue
            data[name] = list(value) if isinstance(value, list) else value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> JwtCustomClaims:
        """Build claims from a decoded token body; raise InvalidJwtClaimsFormat if malformed."""
        if not isinstance(data, Mapping):
            raise InvalidJwtClaimsFormat()
        values: dict[str, Any] = {}
        for name in ("user_id", "role", *_TEXT_CLAIMS):
            value = data.get(name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise InvalidJwtClaimsFormat()
            values[name] = value
        audience = data.get("aud")
        if audience is not None:
            if isinstance(audience, str):
                values["aud"] = audience
            elif isinstance(audience, list) and all(isinstance(a, str) for a in audience):
                values["aud"] = list(audience)
            else:
                raise InvalidJwtClaimsFormat()
        for name in _NUMERIC_CLAIMS:
            value = data.get(name)
            if value is None:
                continue
            if not _is_number(value):
                raise InvalidJwtClaimsFormat()
            values[name] = value
        values.setdefault("user_id", "")
        values.setdefault("role", "")
        return cls(**values)