"""Routing of inbound payloads to build subscribers.

The functions here hold no state: they take a raw payload and a snapshot of the
subscriber registry and tell the caller which listener, if any, should receive
the decoded update. The client owns the registry and does the invocation.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TypedDict

from zupf_builds.build_events import BuildStatusUpdate, decode_build_status

BuildListener = Callable[[BuildStatusUpdate], None]


class Delivery(TypedDict):
    """A decoded update paired with the one listener that should receive it."""

    listener: BuildListener
    update: BuildStatusUpdate


def route_update(
    update: BuildStatusUpdate, listeners: Mapping[str, BuildListener]
) -> Delivery | None:
    """Select the listener registered for the update's build id.

    Returns None when nobody subscribed to that build.
    """
    listener = listeners.get(update["build_id"])
    if listener is None:
        return None
    return {"listener": listener, "update": update}


def route_payload(
    payload: str | bytes, listeners: Mapping[str, BuildListener]
) -> Delivery | None:
    """Decode a raw frame and route it.

    Raises:
        InvalidJsonError: if the payload is not JSON.
        JSONTypeError: if the payload is not a well-formed status update.
    """
    return route_update(decode_build_status(payload), listeners)


__all__ = ["BuildListener", "Delivery", "route_payload", "route_update"]
