"""Fire-and-forget realtime events for booking rooms and user channels.

Delivery never blocks or fails the request that produced the event; clients
that miss an event reconcile through the history endpoints.
"""
import asyncio
import logging
from typing import Any, Coroutine

from marketplace.infra.realtime.booking_ws_manager import booking_ws_manager
from marketplace.infra.realtime.ws_manager import ws_manager

logger = logging.getLogger(__name__)

# Strong references so pending tasks are not garbage collected mid-flight
_pending: set[asyncio.Task] = set()


def _log_failure(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Realtime event %s failed: %s", task.get_name(), exc, exc_info=exc)


def fire_and_forget(coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
    """Schedule ``coro`` without awaiting it; failures are logged."""
    task = asyncio.create_task(coro, name=label)
    _pending.add(task)
    task.add_done_callback(_log_failure)
    return task


def booking_room(booking_id: str) -> str:
    return f"booking_{booking_id}"


def emit_to_booking(booking_id: str, event: str, data: dict) -> asyncio.Task:
    """Broadcast ``event`` to everyone connected to the booking's room."""
    message = {"type": event, "booking_id": booking_id, "data": data}
    return fire_and_forget(booking_ws_manager.broadcast(booking_room(booking_id), message), event)


def emit_to_user(user_id: str, event: str, data: dict) -> asyncio.Task:
    """Send ``event`` to a single user's live connections."""
    return fire_and_forget(ws_manager.send_to_user(user_id, {"type": event, "data": data}), event)


async def drain_pending() -> None:
    """Wait for in-flight events (shutdown and tests)."""
    if _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
