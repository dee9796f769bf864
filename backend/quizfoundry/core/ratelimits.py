# backend/quizfoundry/core/ratelimits.py

import threading, time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict

from .errors import AppError

MINUTES = 60


@dataclass(frozen=True)
class RateLimitRule:
    window_seconds: int
    max_requests: int
    error: str
    message: str
    retry_after: str


RULES: Dict[str, RateLimitRule] = {
    "ai_operations": RateLimitRule(
        30 * MINUTES, 30,
        "Too many AI requests",
        "You've reached the limit for AI-powered quiz generation. Please try again later.",
        "30 minutes",
    ),
    "creative_prompts": RateLimitRule(
        5 * MINUTES, 20,
        "Too many creative prompt requests",
        "You've reached the limit for surprise quiz prompts. Please try again in a few minutes.",
        "5 minutes",
    ),
    "general_api": RateLimitRule(
        15 * MINUTES, 200,
        "Too many requests",
        "You've made too many requests. Please try again later.",
        "15 minutes",
    ),
    "auth_operations": RateLimitRule(
        15 * MINUTES, 40,
        "Too many authentication attempts",
        "Too many authentication attempts. Please try again later.",
        "15 minutes",
    ),
    "security_validation": RateLimitRule(
        10 * MINUTES, 50,
        "Too many security validation requests",
        "You've reached the limit for content security validation. Please try again later.",
        "10 minutes",
    ),
    "user_update": RateLimitRule(
        15 * MINUTES, 10,
        "Rate limit exceeded",
        "Too many profile update requests, please try again later",
        "15 minutes",
    ),
    "avatar_upload": RateLimitRule(
        15 * MINUTES, 5,
        "Rate limit exceeded",
        "Too many avatar upload requests, please try again later",
        "15 minutes",
    ),
}


class RateLimitExceeded(AppError):
    def __init__(self, rule: RateLimitRule):
        super().__init__(rule.error, 429, code="RATE_LIMITED")
        self.rule = rule

    def to_payload(self):
        return {
            "success": False,
            "error": self.rule.error,
            "message": self.rule.message,
            "retryAfter": self.rule.retry_after,
        }


class RateLimiter:
    """Sliding-log limiter: at most `max_requests` hits per key within the window."""

    def __init__(self, rule: RateLimitRule, clock: Callable[[], float] = time.monotonic):
        self.rule = rule
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._hits)

    def _sweep(self, now: float) -> None:
        # drop keys whose newest hit is outside the window
        window = self.rule.window_seconds
        for key in [k for k, log in self._hits.items() if not log or now - log[-1] >= window]:
            del self._hits[key]
        self._next_sweep = now + window

    def hit(self, key: str) -> None:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            log = self._hits.setdefault(key, deque())
            while log and now - log[0] >= self.rule.window_seconds:
                log.popleft()
            if len(log) >= self.rule.max_requests:
                raise RateLimitExceeded(self.rule)
            log.append(now)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def build_limiters(clock: Callable[[], float] = time.monotonic) -> Dict[str, RateLimiter]:
    return {name: RateLimiter(rule, clock) for name, rule in RULES.items()}
