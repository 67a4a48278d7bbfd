"""
Users API - Connectivity Supervisor
====================================

What:  Owns the store connection lifecycle and publishes readiness.
Why:   The store container routinely starts after the API container. The
       service must come up anyway, answer 503 until the store is reachable,
       and recover on its own when the connection later drops.
How:   One long-lived asyncio task runs an explicit state machine. Passes over
       the ConnectionTarget are driven by tenacity (fixed wait between passes,
       bounded or unbounded pass budget); targets inside a pass are tried
       back to back with no delay.

State Machine:
    DISCONNECTED ──start()──▶ CONNECTING ──attempt ok──▶ CONNECTED
                                  │  ▲                        │
                  budget spent    │  └── disconnect / failed ─┘
                                  ▼        heartbeat
                               FAILED  (terminal, no further attempts)

    Within CONNECTING:
        pass k: target[0] → target[1] → ... → target[n-1]   (no delay)
        all failed → wait `delay` → pass k+1 from target[0]

Suspension points:
    The task only suspends in the per-attempt timeout, the inter-pass delay,
    the bounded first-connect bootstrap, and (while CONNECTED) the heartbeat
    wait. Request handlers never await it.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_fixed,
)

from users_api.connectivity.readiness import (
    ConnectionSnapshot,
    ConnectionState,
    ReadinessPublisher,
)
from users_api.connectivity.resolver import ConnectionTarget, redact_uri
from users_api.exceptions import (
    AuthenticationFailed,
    ConnectivityError,
    RetryBudgetExhausted,
    TargetUnreachable,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    How hard the supervisor tries before giving up.

    Attributes:
        max_passes:      full passes over the target list; None = unbounded.
                         0 behaves like 1 (one pass, no retries).
        delay:           seconds to wait between passes
        attempt_timeout: upper bound for a single connection attempt
    """

    max_passes: Optional[int] = 10
    delay: float = 5.0
    attempt_timeout: float = 10.0

    def __post_init__(self):
        if self.max_passes is not None and self.max_passes < 0:
            raise ValueError("max_passes must be >= 0 or None")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")
        if self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be > 0")

    @property
    def is_bounded(self) -> bool:
        return self.max_passes is not None

    @property
    def pass_budget(self) -> Optional[int]:
        return None if self.max_passes is None else max(1, self.max_passes)

    def stop_condition(self):
        budget = self.pass_budget
        return stop_never if budget is None else stop_after_attempt(budget)

    @classmethod
    def from_settings(cls, config) -> "RetryPolicy":
        return cls(
            max_passes=config.db_max_retries,
            delay=config.db_retry_delay,
            attempt_timeout=config.db_connect_timeout,
        )


class _PassFailed(Exception):
    """Every target in one pass failed. Internal signal for tenacity."""

    def __init__(self, pass_number: int, last_error: Optional[BaseException]):
        super().__init__(f"pass {pass_number} failed: {last_error}")
        self.pass_number = pass_number
        self.last_error = last_error


FirstConnectHook = Callable[[object], Awaitable[None]]
TerminalFailureHook = Callable[[ConnectivityError], None]


class ConnectivitySupervisor:
    """
    Drives connection attempts and publishes a ConnectionSnapshot.

    Args:
        targets:               ordered targets from resolve()
        policy:                RetryPolicy
        connector:             object with `async connect(uri, timeout) -> handle`
        heartbeat_interval:    seconds between liveness pings while CONNECTED
        auth_failure_terminal: end retries on the first AuthenticationFailed
        on_first_connect:      coroutine run once after the first connection
        bootstrap_timeout:     bound for on_first_connect; defaults to the attempt timeout
        on_terminal_failure:   callback run once when FAILED is reached
        sleep:                 inter-pass sleep function (tests pass a fast one)
    """

    def __init__(
        self,
        targets: ConnectionTarget,
        policy: RetryPolicy,
        connector,
        *,
        heartbeat_interval: float = 10.0,
        auth_failure_terminal: bool = False,
        on_first_connect: Optional[FirstConnectHook] = None,
        bootstrap_timeout: Optional[float] = None,
        on_terminal_failure: Optional[TerminalFailureHook] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.targets = targets
        self.policy = policy
        self.connector = connector
        self.heartbeat_interval = heartbeat_interval
        self.auth_failure_terminal = auth_failure_terminal
        self.on_first_connect = on_first_connect
        self.bootstrap_timeout = (
            bootstrap_timeout if bootstrap_timeout is not None else policy.attempt_timeout
        )
        self.on_terminal_failure = on_terminal_failure
        self._sleep = sleep

        self._publisher = ReadinessPublisher()
        self._task: Optional[asyncio.Task] = None
        self._disconnected = asyncio.Event()
        self._disconnect_cause: Optional[str] = None
        self._bootstrapped = False
        self._stopped = False
        self.failure: Optional[ConnectivityError] = None

    # ══════════════════════════════════════════════════════════════════════
    # Public interface
    # ══════════════════════════════════════════════════════════════════════

    def start(self) -> None:
        """Schedule the state machine. Later calls are no-ops."""
        if self._task is not None or self._stopped:
            logger.debug("Supervisor already started; ignoring start()")
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="store-connectivity-supervisor")
        logger.info(
            "Connectivity supervisor started: %d target(s), pass budget=%s, delay=%.1fs, "
            "attempt timeout=%.1fs",
            len(self.targets),
            self.policy.pass_budget if self.policy.is_bounded else "unbounded",
            self.policy.delay,
            self.policy.attempt_timeout,
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def current_state(self) -> ConnectionSnapshot:
        """Latest published snapshot. Never blocks."""
        return self._publisher.current()

    async def await_connected(self, timeout: float) -> ConnectionSnapshot:
        """
        Wait until CONNECTED.

        Raises:
            TimeoutError:         not connected within `timeout` seconds
            RetryBudgetExhausted: the supervisor reached FAILED first
        """

        async def _wait() -> ConnectionSnapshot:
            while True:
                snapshot = self._publisher.current()
                if snapshot.is_connected:
                    return snapshot
                if snapshot.state.is_terminal:
                    raise self.failure or RetryBudgetExhausted(passes=0)
                await self._publisher.wait_for_change()

        try:
            return await asyncio.wait_for(_wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(
                f"Database not connected within {timeout:.1f}s "
                f"(state={self.current_state().state.value})"
            ) from None

    def notify_disconnected(self, cause: str = "connection lost") -> None:
        """
        Report that the published connection stopped working.

        Safe to call from request handlers; only wakes the supervisor task,
        which performs the actual transition.
        """
        if self.current_state().state is not ConnectionState.CONNECTED:
            return
        if not self._disconnected.is_set():
            self._disconnect_cause = cause
            self._disconnected.set()

    async def stop(self, grace: float) -> bool:
        """
        Cancel the state machine (in-flight attempt or delay included).

        Returns False if the task did not finish within `grace` seconds.
        """
        self._stopped = True
        task = self._task
        if task is None or task.done():
            return True
        task.cancel()
        done, _ = await asyncio.wait({task}, timeout=grace)
        if not done:
            logger.warning("Supervisor task did not stop within %.1fs", grace)
            return False
        return True

    async def close_connection(self, publish: bool = True) -> None:
        """
        Close the published handle (if any) and publish DISCONNECTED.

        Pass publish=False when stop() did not finish: the task may still be
        publishing, and the snapshot keeps a single writer.
        """
        snapshot = self.current_state()
        handle = snapshot.handle
        if not publish:
            logger.warning(
                "Supervisor task still running; closing the store handle without "
                "publishing DISCONNECTED"
            )
        elif snapshot.state is not ConnectionState.DISCONNECTED:
            self._transition(ConnectionState.DISCONNECTED, cause="shutdown")
        if handle is not None:
            await handle.close()
            logger.info("Store connection closed (%s)", snapshot.target)

    # ══════════════════════════════════════════════════════════════════════
    # State machine
    # ══════════════════════════════════════════════════════════════════════

    async def _run(self) -> None:
        try:
            while True:
                connected = await self._connect_with_retries()
                if connected is None:
                    return
                handle, target = connected
                await self._on_connected(handle, target)

                cause = await self._watch(handle)
                self._transition(
                    ConnectionState.CONNECTING,
                    target=target,
                    cause=cause,
                    error=cause,
                )
                await self._discard(handle, target)
        except asyncio.CancelledError:
            logger.info("Connectivity supervisor cancelled")
            raise
        except Exception as e:
            logger.error("Connectivity supervisor crashed: %s", e, exc_info=True)
            self._fail(ConnectivityError(message=f"Supervisor crashed: {e}"))

    async def _connect_with_retries(self) -> Optional[Tuple[object, str]]:
        if self.current_state().state is not ConnectionState.CONNECTING:
            self._transition(ConnectionState.CONNECTING, cause="connection cycle started")
        retrying = AsyncRetrying(
            stop=self.policy.stop_condition(),
            wait=wait_fixed(self.policy.delay),
            retry=retry_if_exception_type(_PassFailed),
            before_sleep=self._before_next_pass,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._run_pass(attempt.retry_state.attempt_number)
        except _PassFailed as e:
            self._fail(RetryBudgetExhausted(passes=e.pass_number, last_error=e.last_error))
        except AuthenticationFailed as e:
            # only escapes a pass when auth failures are configured as terminal
            self._fail(e)
        return None

    async def _run_pass(self, pass_number: int) -> Tuple[object, str]:
        last_error: Optional[BaseException] = None
        total = len(self.targets)

        for index, uri in enumerate(self.targets):
            shown = redact_uri(uri)
            logger.info(
                "Connecting to %s (pass %d, target %d/%d)", shown, pass_number, index + 1, total
            )
            try:
                handle = await asyncio.wait_for(
                    self.connector.connect(uri, self.policy.attempt_timeout),
                    timeout=self.policy.attempt_timeout,
                )
            except AuthenticationFailed as e:
                e.target = shown
                logger.warning("Authentication failed for %s: %s", shown, e.message)
                if self.auth_failure_terminal:
                    raise
                last_error = e
            except asyncio.TimeoutError:
                last_error = TargetUnreachable(
                    message=f"Attempt timed out after {self.policy.attempt_timeout:.1f}s",
                    target=shown,
                )
                logger.warning("Connection to %s failed: %s", shown, last_error.message)
            except (ConnectivityError, OSError) as e:
                last_error = e
                logger.warning("Connection to %s failed: %s", shown, e)
            else:
                return handle, shown

        raise _PassFailed(pass_number, last_error)

    def _before_next_pass(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        budget = self.policy.pass_budget
        logger.warning(
            "Pass %d/%s failed (%s); retrying in %.1fs",
            retry_state.attempt_number,
            budget if budget is not None else "unbounded",
            getattr(exc, "last_error", exc),
            self.policy.delay,
        )

    async def _on_connected(self, handle, target: str) -> None:
        self._disconnected.clear()
        self._disconnect_cause = None
        self._transition(
            ConnectionState.CONNECTED,
            target=target,
            handle=handle,
            database=getattr(handle, "database_name", None),
            host=getattr(handle, "host", None),
            port=getattr(handle, "port", None),
            error=None,
            cause="attempt succeeded",
        )

        if self.on_first_connect is not None and not self._bootstrapped:
            self._bootstrapped = True
            # Bounded: the task handles no heartbeat or disconnect until this returns
            try:
                await asyncio.wait_for(
                    self.on_first_connect(handle), timeout=self.bootstrap_timeout
                )
            except asyncio.TimeoutError:
                logger.error(
                    "First-connect bootstrap did not finish within %.1fs; continuing",
                    self.bootstrap_timeout,
                )
            except Exception as e:
                logger.error("First-connect bootstrap failed: %s", e, exc_info=True)

    async def _watch(self, handle) -> str:
        """Block while CONNECTED; return the cause once the connection is lost."""
        while True:
            try:
                await asyncio.wait_for(
                    self._disconnected.wait(), timeout=self.heartbeat_interval
                )
                return self._disconnect_cause or "disconnect notification"
            except asyncio.TimeoutError:
                pass
            try:
                await handle.ping(self.policy.attempt_timeout)
            except (ConnectivityError, OSError) as e:
                return f"heartbeat failed: {e}"

    async def _discard(self, handle, target: str) -> None:
        try:
            await asyncio.wait_for(handle.close(), timeout=self.policy.attempt_timeout)
        except (asyncio.TimeoutError, ConnectivityError, OSError) as e:
            logger.warning("Could not close dropped connection to %s: %s", target, e)

    def _fail(self, error: ConnectivityError) -> None:
        self.failure = error
        self._transition(
            ConnectionState.FAILED,
            error=error.message,
            cause=error.message,
        )
        if self.on_terminal_failure is not None:
            try:
                self.on_terminal_failure(error)
            except Exception as e:
                logger.error("Terminal-failure callback raised: %s", e, exc_info=True)

    def _transition(self, state: ConnectionState, cause: str = "", **fields) -> None:
        previous = self._publisher.current()
        if state is not ConnectionState.CONNECTED:
            fields.update(handle=None, database=None, host=None, port=None)
        snapshot = previous.evolve(state=state, **fields)
        self._publisher.publish(snapshot)

        level = logging.ERROR if state.is_terminal else logging.INFO
        logger.log(
            level,
            "Database state %s -> %s (target=%s, cause=%s)",
            previous.state.value,
            state.value,
            snapshot.target or "-",
            cause or "-",
        )
