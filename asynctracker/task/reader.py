"""Consumer side of the task service: keeps the local account list up to date."""

from __future__ import annotations

import logging
import threading

from asynctracker.common import KAFKA_TOPIC_ACCOUNT
from asynctracker.messaging import InMemoryBroker, Message, TopicReader, handle, validate_payload
from asynctracker.task.models import (
    EVENT_KEY_ACCOUNT_CREATED,
    EVENT_KEY_ACCOUNT_UPDATED,
    AccountCreatedValue,
    AccountUpdatedValue,
)
from asynctracker.task.service import TaskService

_log = logging.getLogger(__name__)


class TaskEventReader:
    """Applies account events to the task service."""

    def __init__(self, service: TaskService) -> None:
        self.service = service

    def start_readers(self, broker: InMemoryBroker, group_id: str) -> list[threading.Thread]:
        """Start a background reader on the account topic and return its thread."""
        reader = TopicReader(broker, group_id, KAFKA_TOPIC_ACCOUNT)
        thread = threading.Thread(
            target=handle,
            args=(reader, self.handle_message),
            name=f"reader-{KAFKA_TOPIC_ACCOUNT}",
            daemon=True,
        )
        thread.start()
        return [thread]

    def handle_message(self, message: Message) -> bool:
        """Dispatch a message by key; return whether it was handled.

        Raises PayloadValidationFailed when the body does not fit its key.
        """
        key = message.key.decode(errors="replace")
        if key == EVENT_KEY_ACCOUNT_CREATED:
            created = validate_payload(message, AccountCreatedValue)
            self.service.upsert_account_role(created.user_id, True, created.role)
            return True
        if key == EVENT_KEY_ACCOUNT_UPDATED:
            updated = validate_payload(message, AccountUpdatedValue)
            self.service.upsert_account_role(updated.user_id, updated.active, updated.role)
            return True
        _log.info("ignoring message with key %s", key)
        return False