"""
Long-Running Operation Tracker - Start remote mutations and await completion.

Providers report many mutations asynchronously: the initial response only
acknowledges the request and carries a reference to poll. The tracker
submits the mutation, then polls that reference until the provider reports
a terminal outcome, the caller's deadline passes, or the caller cancels.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Optional, Union

from errors import (
    Cancelled,
    DeadlineExceeded,
    ErrorKind,
    RemoteError,
    RequestRejected,
    TransientRemoteFailure,
    from_remote_error,
)
from remote import (
    MutationRequest,
    OperationHandle,
    OperationState,
    OperationStatus,
    RemoteAPIClient,
    RemoteRecord,
)

logger = logging.getLogger(__name__)


class Deadline:
    """
    A point in time by which a verb must finish, plus a cancel signal.

    A deadline with no timeout never expires but can still be cancelled.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.timeout = timeout
        self.expires_at = None if timeout is None else time.monotonic() + timeout
        self.cancel_event = cancel_event or asyncio.Event()

    def remaining(self) -> Optional[float]:
        """Seconds left, or None for an unbounded deadline."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Signal every wait bound to this deadline to give up."""
        self.cancel_event.set()


def _retrieve_background_result(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned remote call finished with error: {exc}")


async def run_within(
    deadline: Optional[Deadline],
    awaitable: Awaitable[Any],
    description: str,
    abandon: bool = True,
) -> Any:
    """
    Await a call, releasing the caller at the deadline or on cancellation.

    Args:
        deadline: Deadline to honor; None waits indefinitely.
        awaitable: The call to run.
        description: What the call does, used in error messages.
        abandon: When True an unfinished call keeps running in the
            background after the caller is released; otherwise it is
            cancelled.

    Raises:
        DeadlineExceeded: If the deadline passes first.
        Cancelled: If the deadline's cancel event fires first.
    """
    if deadline is None:
        return await awaitable

    if deadline.cancelled or deadline.expired:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        if deadline.cancelled:
            raise Cancelled(f"cancelled before {description}")
        raise DeadlineExceeded(f"deadline passed before {description}")

    task = asyncio.ensure_future(awaitable)
    cancel_waiter = asyncio.ensure_future(deadline.cancel_event.wait())
    try:
        done, _ = await asyncio.wait(
            {task, cancel_waiter},
            timeout=deadline.remaining(),
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        cancel_waiter.cancel()

    if task in done:
        return task.result()

    if abandon:
        task.add_done_callback(_retrieve_background_result)
    else:
        task.cancel()

    if deadline.cancelled:
        raise Cancelled(f"cancelled while {description}")
    raise DeadlineExceeded(
        f"{description} did not finish within {deadline.timeout}s"
    )


class OutcomeStatus(Enum):
    """Terminal outcomes of a remote mutation."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_FOUND = "not_found"


@dataclass
class TerminalOutcome:
    """How a mutation ended."""

    status: OutcomeStatus
    cause: Optional[str] = None
    record: Optional[RemoteRecord] = None

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    @property
    def not_found(self) -> bool:
        return self.status == OutcomeStatus.NOT_FOUND


class OperationTracker:
    """
    Drives remote mutations to a terminal outcome.

    The tracker performs no retries: a transient failure while submitting
    or polling is raised to the caller as TransientRemoteFailure.
    """

    def __init__(self, client: RemoteAPIClient, poll_interval: float = 10.0):
        self.client = client
        self.poll_interval = poll_interval

    async def start(
        self,
        mutation: MutationRequest,
        deadline: Optional[Deadline] = None,
    ) -> Union[OperationHandle, TerminalOutcome]:
        """
        Submit a mutation.

        Returns:
            An OperationHandle to wait on, or a TerminalOutcome when the
            provider answered synchronously (including NOT_FOUND).

        Raises:
            RequestRejected: If the provider refuses the request outright.
            TransientRemoteFailure: If the provider reports a transient error.
        """
        description = f"submitting {mutation.kind.value} of {mutation.locator}"
        try:
            result = await run_within(
                deadline, self.client.submit(mutation, deadline), description
            )
        except RemoteError as e:
            if e.not_found:
                logger.info(f"{mutation.locator} not found on {mutation.kind.value}")
                return TerminalOutcome(OutcomeStatus.NOT_FOUND, cause=str(e))
            if e.kind in (ErrorKind.REJECTED, ErrorKind.CONFLICT):
                raise RequestRejected(str(e)) from e
            raise from_remote_error(e) from e

        if isinstance(result, OperationHandle):
            logger.info(
                f"Started long-running {mutation.kind.value} of {mutation.locator}"
            )
            return result

        logger.debug(f"{mutation.kind.value} of {mutation.locator} completed inline")
        return TerminalOutcome(OutcomeStatus.SUCCEEDED, record=result.record)

    async def status(self, handle: OperationHandle) -> OperationStatus:
        """
        Check an operation once.

        Safe to call after wait() has given up; the handle stays valid.
        """
        try:
            return await self.client.poll(handle)
        except RemoteError as e:
            if e.not_found:
                return OperationStatus(OperationState.NOT_FOUND, cause=str(e))
            if e.kind == ErrorKind.TRANSIENT:
                raise TransientRemoteFailure(str(e)) from e
            raise from_remote_error(e) from e

    async def wait(
        self,
        handle: OperationHandle,
        deadline: Optional[Deadline] = None,
    ) -> TerminalOutcome:
        """
        Block until the operation reaches a terminal state.

        Raises:
            DeadlineExceeded: If the deadline passes first.
            Cancelled: If the deadline is cancelled first.
        """
        mutation = handle.mutation
        return await run_within(
            deadline,
            self._poll_until_terminal(handle),
            f"waiting on {mutation.kind.value} of {mutation.locator}",
            abandon=False,
        )

    async def complete(
        self,
        mutation: MutationRequest,
        deadline: Optional[Deadline] = None,
    ) -> TerminalOutcome:
        """Submit a mutation and wait for its terminal outcome."""
        started = await self.start(mutation, deadline)
        if isinstance(started, TerminalOutcome):
            return started
        return await self.wait(started, deadline)

    async def _poll_until_terminal(self, handle: OperationHandle) -> TerminalOutcome:
        delay = handle.retry_after or 0.0
        while True:
            if delay > 0:
                await asyncio.sleep(delay)

            # Shielded so a poll in flight at the deadline still completes
            poll = asyncio.ensure_future(self.status(handle))
            poll.add_done_callback(_retrieve_background_result)
            status = await asyncio.shield(poll)

            if status.state == OperationState.SUCCEEDED:
                return TerminalOutcome(OutcomeStatus.SUCCEEDED)
            if status.state == OperationState.FAILED:
                return TerminalOutcome(OutcomeStatus.FAILED, cause=status.cause)
            if status.state == OperationState.NOT_FOUND:
                return TerminalOutcome(OutcomeStatus.NOT_FOUND, cause=status.cause)

            delay = status.retry_after or self.poll_interval
            logger.debug(
                f"Operation {handle.poll_reference} still in progress, "
                f"polling again in {delay}s"
            )
