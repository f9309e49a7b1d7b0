"""Topic-based messaging: an in-process broker, writers, readers and payload helpers."""

from __future__ import annotations

import base64
import dataclasses
import json
import logging
import threading
import time
import types
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional, TypeVar, Union, get_args, get_origin

from asynctracker.common import PayloadValidationFailed

_log = logging.getLogger(__name__)

P = TypeVar("P")


@dataclass(frozen=True)
class Message:
    """A keyed message on a topic."""

    key: bytes
    value: bytes
    topic: str = ""


class InMemoryBroker:
    """Thread-safe in-process topic log with a read offset per consumer group."""

    def __init__(self) -> None:
        self._topics: dict[str, list[Message]] = defaultdict(list)
        self._offsets: dict[tuple[str, str | None], int] = {}
        self._cond = threading.Condition()
        self._closed = False

    def publish(self, topic: str, message: Message) -> None:
        """Append a message to a topic; raise BrokenPipeError once closed."""
        with self._cond:
            if self._closed:
                raise BrokenPipeError("broker is closed")
            self._topics[topic].append(replace(message, topic=topic))
            self._cond.notify_all()

    def read(self, topic: str, group_id: str | None, timeout: float | None = None) -> Message:
        """Return the group's next message, waiting up to timeout seconds.

        Raises TimeoutError when nothing arrives in time and EOFError when the
        broker is closed and the group has read everything.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                entries = self._topics.get(topic, [])
                position = self._offsets.get((topic, group_id), 0)
                if position < len(entries):
                    self._offsets[(topic, group_id)] = position + 1
                    return entries[position]
                if self._closed:
                    raise EOFError("broker is closed")
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"no message on topic {topic!r}")
                self._cond.wait(remaining)

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.isoformat()
    base, offset = text[:-6], text[-6:]
    if "." in base:
        base = base.rstrip("0").rstrip(".")
    if offset == "+00:00":
        offset = "Z"
    return base + offset


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, enums, timestamps and bytes into JSON-ready values."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict) and not isinstance(value, type):
        return to_jsonable(to_dict())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return to_jsonable(value.value)
    if isinstance(value, datetime):
        return _format_time(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, dict):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


class TopicWriter:
    """Publishes messages to one topic; delivery failures are logged, not raised."""

    def __init__(self, broker: InMemoryBroker, topic: str) -> None:
        self.broker = broker
        self.topic = topic
        self._closed = False

    def write_bytes(self, key: str, value: bytes) -> None:
        message = Message(key=key.encode(), value=bytes(value), topic=self.topic)
        if self._closed:
            _log.error("failed to write message: writer closed (topic=%s key=%s)", self.topic, key)
            return
        try:
            self.broker.publish(self.topic, message)
        except BrokenPipeError as exc:
            _log.error("failed to write message (topic=%s key=%s): %s", self.topic, key, exc)
            return
        _log.info("written message (topic=%s key=%s value=%r)", self.topic, key, message.value)

    def write_string(self, key: str, value: str) -> None:
        self.write_bytes(key, value.encode())

    def write_json(self, key: str, value: Any) -> None:
        """Serialise value as JSON and write it; raise TypeError if it cannot be."""
        try:
            encoded = json.dumps(to_jsonable(value)).encode()
        except (TypeError, ValueError) as exc:
            _log.error("failed to marshal payload (topic=%s key=%s): %s", self.topic, key, exc)
            raise
        self.write_bytes(key, encoded)

    def close(self) -> None:
        self._closed = True


class TopicReader:
    """Reads one topic as a member of a consumer group."""

    def __init__(self, broker: InMemoryBroker, group_id: str | None, topic: str) -> None:
        self.broker = broker
        self.group_id = group_id
        self.topic = topic
        self._closed = False

    def read_message(self, timeout: float | None = None) -> Message:
        if self._closed:
            raise EOFError("reader is closed")
        return self.broker.read(self.topic, self.group_id, timeout)

    def close(self) -> None:
        self._closed = True


def handle(reader: TopicReader, handler: Callable[[Message], Any]) -> None:
    """Feed messages to handler until reading fails, then close the reader."""
    try:
        while True:
            try:
                message = reader.read_message()
            except Exception as exc:
                _log.error("error while reading message: %s", exc)
                break
            _log.info(
                "received message from broker (topic=%s key=%s)",
                reader.topic,
                message.key.decode(errors="replace"),
            )
            try:
                handler(message)
            except Exception as exc:
                _log.error("error while handling message: %s", exc)
    finally:
        reader.close()


_SIMPLE_TYPES: dict[str, Any] = {
    "str": str,
    "bool": bool,
    "int": int,
    "float": float,
    "None": type(None),
    "NoneType": type(None),
    "Any": Any,
    "typing.Any": Any,
    "list": list,
    "List": list,
    "typing.List": list,
    "dict": dict,
    "Dict": dict,
    "typing.Dict": dict,
}


def _split_top_level(text: str, separator: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts]


def _resolve_text(text: str) -> Any:
    """Resolve a textual annotation of simple builtin types; anything else is Any."""
    text = text.strip().strip("'\"")
    members = _split_top_level(text, "|")
    if len(members) > 1:
        resolved = tuple(_resolve_text(member) for member in members)
        if Any in resolved:
            return Any
        return Union[resolved]
    if "[" in text and text.endswith("]"):
        head, inner = text.split("[", 1)
        head = head.strip()
        inner = inner[:-1]
        if head in ("Optional", "typing.Optional"):
            resolved_inner = _resolve_text(inner)
            return Any if resolved_inner is Any else Optional[resolved_inner]
        if head in ("Union", "typing.Union"):
            resolved = tuple(_resolve_text(member) for member in _split_top_level(inner, ","))
            if Any in resolved:
                return Any
            return Union[resolved]
        base = _SIMPLE_TYPES.get(head)
        if base in (list, dict):
            return base
        return Any
    return _SIMPLE_TYPES.get(text, Any)


def _field_types(payload_type: type) -> dict[str, Any]:
    """Annotations of a dataclass's fields; unresolvable ones become Any."""
    return {
        f.name: _resolve_text(f.type) if isinstance(f.type, str) else f.type
        for f in dataclasses.fields(payload_type)
    }


def _matches(value: Any, annotation: Any) -> bool:
    origin = get_origin(annotation)
    if origin in (Union, types.UnionType):
        return any(_matches(value, arg) for arg in get_args(annotation))
    if annotation is type(None):
        return value is None
    if annotation is Any:
        return True
    if annotation is bool:
        return isinstance(value, bool)
    if annotation is int:
        return isinstance(value, int) and not isinstance(value, bool)
    if annotation is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if annotation is str:
        return isinstance(value, str)
    if annotation is list or origin is list:
        return isinstance(value, list)
    if annotation is dict or origin is dict:
        return isinstance(value, dict)
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return value in {member.value for member in annotation}
    return True


def _zero(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin in (Union, types.UnionType) and type(None) in get_args(annotation):
        return None
    zeros = {str: "", bool: False, int: 0, float: 0.0}
    if annotation in zeros:
        return zeros[annotation]
    if annotation is list or origin is list:
        return []
    if annotation is dict or origin is dict:
        return {}
    return None


def _is_zero(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, list, dict)):
        return not value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return False


def validate_payload(message: Message, payload_type: type[P]) -> P:
    """Decode a JSON message body into a dataclass.

    Absent fields take their default or zero value, unknown fields are
    ignored, and fields marked with metadata ``required`` must be non-zero.
    Raises PayloadValidationFailed when the body does not fit.
    """
    key = message.key.decode(errors="replace")
    try:
        data = json.loads(message.value)
    except (ValueError, UnicodeDecodeError) as exc:
        _log.error("error while unmarshaling payload (key=%s): %s", key, exc)
        raise PayloadValidationFailed() from exc
    if not isinstance(data, dict):
        _log.error("error while unmarshaling payload (key=%s): not an object", key)
        raise PayloadValidationFailed()
    hints = _field_types(payload_type)
    values: dict[str, Any] = {}
    for f in dataclasses.fields(payload_type):
        if not f.init:
            continue
        annotation = hints.get(f.name, Any)
        if f.name in data:
            value = data[f.name]
            if not _matches(value, annotation):
                _log.error("error while unmarshaling payload (key=%s): bad field %s", key, f.name)
                raise PayloadValidationFailed()
        elif f.default is not dataclasses.MISSING:
            value = f.default
        elif f.default_factory is not dataclasses.MISSING:
            value = f.default_factory()
        else:
            value = _zero(annotation)
        if f.metadata.get("required") and _is_zero(value):
            _log.error("error while validating payload (key=%s): %s is required", key, f.name)
            raise PayloadValidationFailed()
        values[f.name] = value
    return payload_type(**values)