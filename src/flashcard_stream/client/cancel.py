"""
Cancellation of running generations.

A CancelToken is what a session watches; a CancelHandle is what the caller
keeps. A token created with a timeout fires by itself once the deadline
passes, with reason TIMEOUT, which the session reports as a timeout rather
than a cancellation.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import TYPE_CHECKING, Any

from flashcard_stream.errors import GenerationCancelledError, StreamTimeoutError
from flashcard_stream.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger(__name__)


class CancelReason(str, Enum):
    """Why a generation was stopped."""

    USER_REQUEST = "user_request"
    TIMEOUT = "timeout"
    SHUTDOWN = "shutdown"


class CancelToken:
    """Cancellation signal observed by one generation session.

    The session checks the token before every emit and races it against
    each wait for the next chunk, so firing it stops delivery promptly.

    Example:
        >>> token = CancelToken(timeout=60.0)
        >>> cards = await client.generate("Photosynthesis", 5, on_card=show, cancel_token=token)
        >>>
        >>> # elsewhere, e.g. a "Stop" button handler
        >>> token.cancel()
    """

    def __init__(self, timeout: float | None = None) -> None:
        """
        Args:
            timeout: Deadline in seconds. Counted from creation inside a running
                event loop, otherwise from the first `wait()`.
        """
        self._timeout = timeout
        self._fired = asyncio.Event()
        self._reason: CancelReason | None = None
        self._cancelled_at: float | None = None
        self._metadata: dict[str, Any] = {}
        self._listeners: list[Callable[[CancelReason], Any]] = []
        self._deadline: asyncio.TimerHandle | None = None
        self._arm_deadline()

    def _arm_deadline(self) -> None:
        if not self._timeout or self._deadline is not None or self.is_cancelled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._deadline = loop.call_later(self._timeout, self.cancel, CancelReason.TIMEOUT)

    def cancel(
        self,
        reason: CancelReason = CancelReason.USER_REQUEST,
        **metadata: Any,
    ) -> bool:
        """Fire the token.

        Args:
            reason: Why the generation is stopped
            **metadata: Free-form details kept on the token

        Returns:
            False if the token had already fired
        """
        if self._reason is not None:
            return False

        self._reason = reason
        self._cancelled_at = time.time()
        self._metadata.update(metadata)
        self.release()
        self._fired.set()
        logger.debug("Cancellation requested", reason=reason.value)

        for listener in self._listeners:
            self._notify(listener, reason)
        return True

    def release(self) -> None:
        """Disarm the deadline; the token can still be cancelled by hand."""
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None

    @property
    def is_cancelled(self) -> bool:
        return self._reason is not None

    @property
    def timed_out(self) -> bool:
        """True if the deadline fired the token."""
        return self._reason is CancelReason.TIMEOUT

    @property
    def reason(self) -> CancelReason | None:
        return self._reason

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def cancelled_at(self) -> float | None:
        """Wall-clock time the token fired."""
        return self._cancelled_at

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    async def wait(self) -> CancelReason:
        """Block until the token fires and return the reason."""
        self._arm_deadline()
        await self._fired.wait()
        return self._reason or CancelReason.USER_REQUEST

    def raise_if_cancelled(self) -> None:
        """Raise if the token has fired.

        Raises:
            StreamTimeoutError: The deadline passed
            GenerationCancelledError: Any other reason
        """
        reason = self._reason
        if reason is None:
            return
        if reason is CancelReason.TIMEOUT:
            raise StreamTimeoutError("Session deadline exceeded", timeout=self._timeout)
        raise GenerationCancelledError(reason=reason.value)

    def on_cancel(self, callback: Callable[[CancelReason], Any]) -> CancelToken:
        """Call `callback(reason)` when the token fires.

        Runs immediately if it already has. Returns the token for chaining.
        """
        self._listeners.append(callback)
        if self._reason is not None:
            self._notify(callback, self._reason)
        return self

    @staticmethod
    def _notify(callback: Callable[[CancelReason], Any], reason: CancelReason) -> None:
        try:
            outcome = callback(reason)
            if asyncio.iscoroutine(outcome):
                _ = asyncio.ensure_future(outcome)  # noqa: RUF006
        except Exception as e:
            logger.warning("Cancel callback failed", reason=reason.value, error=repr(e))


class CancelHandle:
    """The caller's side of a token: can cancel, cannot wait.

    Example:
        >>> handle, token = create_cancel_pair()
        >>> task = asyncio.create_task(client.generate("Photosynthesis", 5, cancel_token=token))
        >>> handle.cancel()
    """

    def __init__(self, token: CancelToken) -> None:
        self._token = token

    def cancel(
        self,
        reason: CancelReason = CancelReason.USER_REQUEST,
        **metadata: Any,
    ) -> bool:
        return self._token.cancel(reason, **metadata)

    @property
    def is_cancelled(self) -> bool:
        return self._token.is_cancelled

    @property
    def reason(self) -> CancelReason | None:
        return self._token.reason


def create_cancel_pair(
    timeout: float | None = None,
) -> tuple[CancelHandle, CancelToken]:
    """Create a handle for the caller and the token it controls.

    Args:
        timeout: Optional deadline in seconds

    Returns:
        (handle, token)
    """
    token = CancelToken(timeout=timeout)
    return CancelHandle(token), token
