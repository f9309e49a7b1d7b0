"""Account management and login for the auth service."""

from __future__ import annotations

import logging
import threading
import uuid

import jwt

from asynctracker.auth.events import new_event_account_created, new_event_account_updated
from asynctracker.common import (
    KAFKA_TOPIC_ACCOUNT,
    AccountNotFound,
    InvalidCredentials,
    JwtCustomClaims,
)
from asynctracker.database import Database
from asynctracker.messaging import InMemoryBroker, Message, TopicReader, TopicWriter, handle

_log = logging.getLogger(__name__)


def create_schema(db: Database) -> None:
    """Create the accounts table if it does not exist."""
    with db.transaction() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS accounts (
                user_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                password_hash TEXT NOT NULL,
                role TEXT NOT NULL,
                active BOOLEAN NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT
            )
            """
        )


class AuthEventWriter:
    """Writers for the topics the auth service publishes to."""

    def __init__(self, broker: InMemoryBroker) -> None:
        self.topic_writer_account = TopicWriter(broker, KAFKA_TOPIC_ACCOUNT)

    def close(self) -> None:
        self.topic_writer_account.close()


class AuthService:
    """Creates accounts, changes their roles and issues login tokens."""

    def __init__(self, db: Database, event_writer: AuthEventWriter, signing_key: str) -> None:
        self.db = db
        self.event_writer = event_writer
        self.signing_key = signing_key

    def create_account(self, name: str, password_hash: str, role: str) -> str:
        """Store a new account, announce it and return its user id."""
        user_id = str(uuid.uuid4())
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO accounts (user_id, name, password_hash, role) VALUES (?, ?, ?, ?)",
                (user_id, name, password_hash, str(role)),
            )
        event = new_event_account_created(user_id, role)
        self.event_writer.topic_writer_account.write_json(event.key, event.value)
        return user_id

    def change_account_role(self, user_id: str, new_role: str) -> None:
        """Give an account a new role and announce the change.

        Raises AccountNotFound when there is no such account.
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "UPDATE accounts SET role = ?, updated_at = CURRENT_TIMESTAMP WHERE user_id = ?",
                (str(new_role), user_id),
            )
            if cursor.rowcount == 0:
                raise AccountNotFound()
            row = conn.execute(
                "SELECT active FROM accounts WHERE user_id = ?", (user_id,)
            ).fetchone()
        event = new_event_account_updated(user_id, new_role, bool(row["active"]))
        self.event_writer.topic_writer_account.write_json(event.key, event.value)

    def login(self, user_id: str, password_hash: str) -> str:
        """Check the credentials and return a signed HS256 token.

        Raises InvalidCredentials when they do not match an account.
        """
        if not self._verify_account_credentials(user_id, password_hash):
            _log.error("invalid credentials for user %s", user_id)
            raise InvalidCredentials()
        claims = self._claims_for_account(user_id)
        return jwt.encode(claims.to_dict(), self.signing_key, algorithm="HS256")

    def _verify_account_credentials(self, user_id: str, password_hash: str) -> bool:
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT COUNT(*) > 0 AS found FROM accounts WHERE user_id = ? AND password_hash = ?",
                (user_id, password_hash),
            ).fetchone()
        return bool(row["found"])

    def _claims_for_account(self, user_id: str) -> JwtCustomClaims:
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT role FROM accounts WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            raise AccountNotFound()
        return JwtCustomClaims(user_id=user_id, role=row["role"])


class AuthEventReader:
    """Consumer side of the auth service."""

    # The auth service currently subscribes to no topics.
    subscribed_topics: tuple[str, ...] = ()

    def __init__(self, service: AuthService) -> None:
        self.service = service

    def start_readers(self, broker: InMemoryBroker, group_id: str) -> list[threading.Thread]:
        """Start a background reader for each subscribed topic and return the threads."""
        threads = []
        for topic in self.subscribed_topics:
            reader = TopicReader(broker, group_id, topic)
            thread = threading.Thread(
                target=handle, args=(reader, self.handle_message), daemon=True
            )
            thread.start()
            threads.append(thread)
        return threads

    def handle_message(self, message: Message) -> bool:
        """Dispatch a message by key; return whether it was handled."""
        _log.info("ignoring message with key %s", message.key.decode(errors="replace"))
        return False