"""Stream ingestion package."""

from ingest.events import Closed, ConnectionEvent, Errored, MessageReceived, Opened
from ingest.stream_client import (
    StreamSettings,
    StreamingIngestClient,
    reconnect_delay_ms,
    stream_url,
)

__all__ = [
    "Closed",
    "ConnectionEvent",
    "Errored",
    "MessageReceived",
    "Opened",
    "StreamSettings",
    "StreamingIngestClient",
    "reconnect_delay_ms",
    "stream_url",
]
