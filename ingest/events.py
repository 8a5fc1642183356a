"""Typed events driving the stream connection state machine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Opened:
    """The underlying connection finished its handshake."""


@dataclass(frozen=True)
class MessageReceived:
    payload: str | bytes
    arrival_ms: int


@dataclass(frozen=True)
class Closed:
    code: int | None = None
    reason: str = ""


@dataclass(frozen=True)
class Errored:
    error: str


ConnectionEvent = Union[Opened, MessageReceived, Closed, Errored]
