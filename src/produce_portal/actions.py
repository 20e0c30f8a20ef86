"""Turning user actions into notices.

Every mutating action in the portal goes through :func:`perform`: the awaited
call either succeeds and yields a success notice, or fails and yields an error
notice carrying the backend's message (or a per-action fallback). Nothing is
retried and callers only update local state when ``outcome.ok`` is true.

:class:`InFlightGuard` refuses a second action on the same target while the
first is still awaiting the backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Hashable, Optional, TypeVar

from . import log
from .errors import PortalError, ValidationError


T = TypeVar("T")

BUSY_MESSAGE = "Please wait, this action is already in progress"


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """Transient message shown to the user after an action."""

    level: NoticeLevel
    message: str

    @property
    def is_error(self) -> bool:
        return self.level is NoticeLevel.ERROR


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of :func:`perform`; ``value`` is only set when ``ok``."""

    ok: bool
    notice: Notice
    value: Optional[T] = None


class InFlightGuard:
    """Track targets with an action awaiting the backend."""

    def __init__(self) -> None:
        self._busy: set[Hashable] = set()

    def is_busy(self, key: Hashable) -> bool:
        return key in self._busy

    def acquire(self, key: Hashable) -> bool:
        if key in self._busy:
            return False
        self._busy.add(key)
        return True

    def release(self, key: Hashable) -> None:
        self._busy.discard(key)


def error_message(exc: BaseException, fallback: str) -> str:
    """Return the message carried by ``exc`` or ``fallback`` when it has none."""
    message = exc.args[0] if exc.args and isinstance(exc.args[0], str) else str(exc)
    return message.strip() or fallback


async def perform(
    call: Callable[[], Awaitable[T]],
    *,
    success: Optional[str],
    failure: str,
    guard: Optional[InFlightGuard] = None,
    key: Hashable = None,
) -> Outcome[T]:
    """Await ``call`` and describe the result as a :class:`Notice`.

    Args:
        call: Zero-argument coroutine factory performing the action.
        success (str | None): Message for the success notice. ``None`` yields
            an empty info notice, for reads that need no confirmation.
        failure (str): Fallback message when the raised error carries none.
        guard (InFlightGuard | None): Optional guard refusing re-entry.
        key: Target identifier checked against ``guard``.

    Returns:
        Outcome: ``ok`` with the call's value, or not ``ok`` with an error
            notice. Exceptions never escape.
    """

    if guard is not None and not guard.acquire(key):
        log.info("Refused duplicate action on %r while in flight", key)
        return Outcome(ok=False, notice=Notice(NoticeLevel.INFO, BUSY_MESSAGE))

    try:
        value = await call()
    except ValidationError as exc:
        return Outcome(ok=False, notice=Notice(NoticeLevel.ERROR, error_message(exc, failure)))
    except PortalError as exc:
        log.error("%s: %s", failure, exc)
        return Outcome(ok=False, notice=Notice(NoticeLevel.ERROR, error_message(exc, failure)))
    except Exception as exc:
        log.exception("Unexpected failure: %s", failure)
        return Outcome(ok=False, notice=Notice(NoticeLevel.ERROR, error_message(exc, failure)))
    finally:
        if guard is not None:
            guard.release(key)

    if success is None:
        return Outcome(ok=True, notice=Notice(NoticeLevel.INFO, ""), value=value)
    return Outcome(ok=True, notice=Notice(NoticeLevel.SUCCESS, success), value=value)


__all__ = [
    "BUSY_MESSAGE",
    "NoticeLevel",
    "Notice",
    "Outcome",
    "InFlightGuard",
    "error_message",
    "perform",
]
