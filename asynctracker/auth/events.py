"""Events published by the auth service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

EVENT_KEY_ACCOUNT_CREATED = "Account.Created"
EVENT_KEY_ACCOUNT_UPDATED = "Account.Updated"


@dataclass(frozen=True)
class Event:
    """A message key together with the value to serialise."""

    key: str
    value: Any


@dataclass
class AccountCreatedValue:
    user_id: str
    role: str


@dataclass
class AccountUpdatedValue:
    user_id: str
    role: str
    active: bool


def new_event_account_created(user_id: str, role: str) -> Event:
    return Event(key=EVENT_KEY_ACCOUNT_CREATED, value=AccountCreatedValue(user_id, str(role)))


def new_event_account_updated(user_id: str, role: str, active: bool) -> Event:
    # Updates travel under the created key; consumers upsert the account on it.
    return Event(
        key=EVENT_KEY_ACCOUNT_CREATED,
        value=AccountUpdatedValue(user_id, str(role), active),
    )