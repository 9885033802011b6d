#!/usr/bin/env python3
"""
Health Verifier: fixed-interval readiness probing with bounded retries.
"""

import time
from dataclasses import dataclass

import requests


DEFAULT_ATTEMPTS = 5
DEFAULT_INTERVAL = 5
DEFAULT_TIMEOUT = 30


@dataclass
class HealthResult:
    healthy: bool
    attempts: int
    reason: str = None


class HealthVerifier:
    """
    Probes a readiness URL up to max_attempts times.

    A probe passes only on a response below 400 received within the
    per-attempt timeout. The loop sleeps a fixed interval between attempts
    (never after the last) and stops early when the overall deadline passes
    or the cancel event is set.
    """

    def __init__(self, session=None, sleep=time.sleep, clock=time.monotonic):
        self.session = session or requests.Session()
        self.sleep = sleep
        self.clock = clock

    def probe(self, endpoint, timeout):
        try:
            response = self.session.get(endpoint, timeout=timeout)
        except requests.RequestException as e:
            return False, f"{type(e).__name__}: {e}"
        if response.status_code >= 400:
            return False, f"HTTP {response.status_code}"
        return True, None

    def _remaining(self, deadline):
        if deadline is None:
            return None
        return deadline - self.clock()

    def verify(self, endpoint, max_attempts=DEFAULT_ATTEMPTS, timeout=DEFAULT_TIMEOUT,
               interval=DEFAULT_INTERVAL, deadline=None, cancel_event=None):
        """
        Returns HealthResult; healthy is False only after every attempt
        failed, or the deadline/cancel cut the remaining attempts.

        deadline is a value of self.clock() after which no further probe
        starts.
        """
        print(f"Performing health check: {endpoint}")
        reason = None
        attempts = 0

        for attempt in range(1, max_attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                return HealthResult(False, attempts, 'cancelled')
            remaining = self._remaining(deadline)
            if remaining is not None and remaining <= 0:
                return HealthResult(False, attempts, 'deployment timeout exceeded')

            probe_timeout = timeout if remaining is None else min(timeout, remaining)
            print(f"Health check attempt {attempt}/{max_attempts}")
            attempts += 1
            passed, reason = self.probe(endpoint, probe_timeout)
            if passed:
                print("✓ Health check passed")
                return HealthResult(True, attempts)

            print(f"Health check failed ({reason})")
            if attempt < max_attempts:
                remaining = self._remaining(deadline)
                delay = interval if remaining is None else max(0, min(interval, remaining))
                self.sleep(delay)

        print(f"ERROR: Health check failed after {max_attempts} attempts")
        return HealthResult(False, attempts, reason)
