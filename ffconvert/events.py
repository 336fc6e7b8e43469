"""Outward notification channel for conversion events.

A sink is any callable taking an event name and a JSON-compatible
payload. Models are serialized with ``model_dump(mode="json")`` so the
payload shape is the field layout of the record itself.
"""

import json
import logging
import sys
import threading
from typing import Any, Callable, Optional, TextIO, Union

from pydantic import BaseModel

logger = logging.getLogger("ffconvert")

CONVERSION_PROGRESS = "conversion-progress"
CONVERSION_COMPLETE = "conversion-complete"
IMAGE_CONVERSION_COMPLETE = "image-conversion-complete"

EventSink = Callable[[str, Any], None]


def serialize_payload(payload: Union[BaseModel, Any]) -> Any:
    """Convert a payload into plain JSON-compatible data."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return payload


def emit(sink: Optional[EventSink], event: str, payload: Any) -> None:
    """Deliver an event to ``sink`` if one is attached.

    A failing sink is logged and otherwise ignored so a broken listener
    cannot abort a running conversion.
    """
    if sink is None:
        return
    try:
        sink(event, serialize_payload(payload))
    except Exception as e:
        logger.warning("Event sink failed for %s: %s", event, e)


class JsonLinesEventSink:
    """Write each event as one JSON object per line.

    Output shape: ``{"event": "<name>", "payload": {...}}``.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream or sys.stdout
        self._lock = threading.Lock()

    def __call__(self, event: str, payload: Any) -> None:
        line = json.dumps(
            {"event": event, "payload": serialize_payload(payload)},
            sort_keys=True,
        )
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()
