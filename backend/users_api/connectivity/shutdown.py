"""
Users API - Shutdown Coordinator
=================================

What:  Tears down store connectivity when the process is asked to stop.
Why:   Closing the MongoDB client explicitly lets the server release the
       session and cursors right away instead of waiting for socket timeouts.
How:   1. Cancel the supervisor (no new attempts; in-flight attempt/delay aborted)
       2. Close the published store handle within the grace period
       3. Return, letting uvicorn finish its own shutdown and exit

Signal flow:
    SIGTERM/SIGINT → uvicorn → lifespan shutdown → ShutdownCoordinator.shutdown()

    The fail_fast policy reuses the same path: request_exit() sends SIGTERM to
    our own process, so a terminal connection failure exits through the normal
    graceful sequence rather than a hard os._exit().
"""

import asyncio
import logging
import os
import signal
import time

from users_api.connectivity.supervisor import ConnectivitySupervisor
from users_api.exceptions import ConnectivityError, ShutdownTimeout

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """
    Runs the shutdown sequence once, bounded by `grace_period` seconds overall.
    """

    def __init__(self, supervisor: ConnectivitySupervisor, grace_period: float = 10.0):
        self.supervisor = supervisor
        self.grace_period = grace_period
        self._done = False
        self._exit_requested = False

    @property
    def completed(self) -> bool:
        return self._done

    async def shutdown(self) -> None:
        """
        Stop the supervisor and close the store connection.

        Never raises for a slow or failing close: an overrun is logged as
        ShutdownTimeout and the process exits anyway.
        """
        if self._done:
            return
        self._done = True

        deadline = time.monotonic() + self.grace_period
        logger.info("Shutting down store connectivity (grace %.1fs)", self.grace_period)

        stopped = await self.supervisor.stop(grace=self.grace_period)
        if not stopped:
            self._log_timeout("supervisor task still running")

        remaining = max(deadline - time.monotonic(), 0.0)
        try:
            await asyncio.wait_for(
                self.supervisor.close_connection(publish=stopped), timeout=remaining
            )
        except asyncio.TimeoutError:
            self._log_timeout("store connection still closing")
        except (ConnectivityError, OSError) as e:
            logger.warning("Error while closing store connection: %s", e)

        logger.info("Store connectivity shut down")

    def request_exit(self, reason: object = None) -> None:
        """
        Ask the process to terminate through the graceful signal path.

        Used as the supervisor's terminal-failure callback under fail_fast.
        """
        if self._exit_requested:
            return
        self._exit_requested = True
        logger.critical("Requesting process exit: %s", reason or "terminal failure")
        os.kill(os.getpid(), signal.SIGTERM)

    def _log_timeout(self, detail: str) -> None:
        error = ShutdownTimeout(grace_period=self.grace_period, context={"detail": detail})
        logger.warning("%s (%s); exiting anyway", error.message, detail)
