"""Readiness polling for stack services."""
import logging
import time
from typing import Callable

import requests

from ..errors import CommandError, PollTimeout, ProbeError
from .models import HealthCheck, Ready

logger = logging.getLogger("elasticctl.health")

# Errors that mean "not listening yet" rather than "broken"
TRANSIENT_ERRORS = (ProbeError, CommandError, requests.RequestException, ConnectionError)


class HealthPoller:
    """Evaluates a HealthCheck predicate with a bounded retry budget."""

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sleep = sleep
        self.clock = clock

    def poll(self, check: HealthCheck) -> Ready:
        """Poll until the predicate holds.

        The grace period is waited once without polling. Then the predicate is
        evaluated up to ``max_attempts`` times; the delay between attempts
        starts at ``interval`` and is multiplied by ``backoff`` after each
        miss, capped at ``max_interval``. ``timeout`` additionally bounds the
        total time spent polling.

        Args:
            check: The health check to evaluate

        Returns:
            Ready with the number of evaluations it took

        Raises:
            PollTimeout: If the predicate never held within the budget
        """
        if check.grace_period > 0:
            logger.info("⏳ Waiting %.0fs for %s to initialize...", check.grace_period, check.target)
            self.sleep(check.grace_period)

        logger.info("🔍 Checking %s health...", check.target)
        start = self.clock()
        delay = check.interval
        attempt = 0

        while attempt < check.max_attempts:
            attempt += 1
            if self._evaluate(check, attempt):
                elapsed = self.clock() - start
                logger.info("✅ %s is ready (attempt %d)", check.target, attempt)
                return Ready(target=check.target, attempts=attempt, elapsed=elapsed)

            if attempt >= check.max_attempts:
                break
            if check.timeout is not None and self.clock() - start + delay > check.timeout:
                logger.debug("%s: next attempt would exceed %.0fs timeout", check.target, check.timeout)
                break

            self.sleep(delay)
            delay = delay * check.backoff
            if check.max_interval is not None:
                delay = min(delay, check.max_interval)

        elapsed = self.clock() - start
        logger.error("❌ %s failed to become ready within the expected time", check.target)
        raise PollTimeout(check.target, attempt, elapsed)

    def _evaluate(self, check: HealthCheck, attempt: int) -> bool:
        try:
            ok = bool(check.predicate())
        except TRANSIENT_ERRORS as e:
            logger.debug("%s not ready (attempt %d/%d): %s", check.target, attempt, check.max_attempts, e)
            return False
        if not ok:
            logger.debug("%s not ready (attempt %d/%d)", check.target, attempt, check.max_attempts)
        return ok
