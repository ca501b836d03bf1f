# =============================================================================
# DOCS UPDATER - RETRY POLICY
# =============================================================================
"""
Retry Policy

A single, explicit retry schedule shared by the GitHub client and the LLM
client. The GitHub client maps it onto urllib3's ``Retry`` (idempotent
methods only); the LLM client loops over ``delays()`` itself.

Usage:
    policy = RetryPolicy(max_attempts=3, backoff_factor=0.5)
    list(policy.delays())       # [0.5, 1.0]
    policy.to_urllib3()         # urllib3 Retry for a requests adapter
"""

from dataclasses import dataclass, field
from itertools import takewhile
from typing import Any, Dict, FrozenSet, Iterator, Optional

from urllib3.util.retry import Retry


# Methods that can be replayed without creating duplicate side effects
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE"})

DEFAULT_RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


class BackoffRetry(Retry):
    """
    urllib3 ``Retry`` that waits ``backoff_factor * 2 ** (n - 1)`` before
    retry ``n``, starting with the first one (stock urllib3 skips the
    first delay). ``Retry-After`` headers still take precedence.
    """

    def get_backoff_time(self) -> float:
        consecutive_errors = len(list(
            takewhile(lambda entry: entry.redirect_location is None, reversed(self.history))
        ))
        if consecutive_errors == 0:
            return 0
        delay = self.backoff_factor * (2 ** (consecutive_errors - 1))
        return float(max(0, min(self.backoff_max, delay)))


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff schedule.

    Attributes:
        max_attempts: Total attempts including the first one (1 = no retry)
        backoff_factor: Delay before the first retry, doubled each time
        max_backoff: Upper bound for a single delay
        retry_statuses: HTTP status codes considered transient
    """
    max_attempts: int = 3
    backoff_factor: float = 0.5
    max_backoff: float = 8.0
    retry_statuses: FrozenSet[int] = field(default=DEFAULT_RETRY_STATUSES)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_factor < 0:
            raise ValueError("backoff_factor must be non-negative")

    @property
    def retries(self) -> int:
        """Number of retries after the first attempt."""
        return self.max_attempts - 1

    def delay_for(self, retry_number: int) -> float:
        """Delay in seconds before retry ``retry_number`` (1-based)."""
        delay = self.backoff_factor * (2 ** (retry_number - 1))
        return min(delay, self.max_backoff)

    def delays(self) -> Iterator[float]:
        """Yield the delay before each retry, in order."""
        for retry_number in range(1, self.max_attempts):
            yield self.delay_for(retry_number)

    def should_retry_status(self, status_code: Optional[int]) -> bool:
        return status_code is not None and status_code in self.retry_statuses

    def to_urllib3(self) -> BackoffRetry:
        """Build the urllib3 ``Retry`` used by the GitHub HTTP adapter."""
        return BackoffRetry(
            total=self.retries,
            backoff_factor=self.backoff_factor,
            backoff_max=self.max_backoff,
            status_forcelist=sorted(self.retry_statuses),
            allowed_methods=sorted(IDEMPOTENT_METHODS),
            raise_on_status=False,
        )

    @classmethod
    def none(cls) -> "RetryPolicy":
        """Policy that never retries."""
        return cls(max_attempts=1)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RetryPolicy":
        data = data or {}
        statuses = data.get("retry_statuses")
        return cls(
            max_attempts=int(data.get("max_attempts", 3)),
            backoff_factor=float(data.get("backoff_factor", 0.5)),
            max_backoff=float(data.get("max_backoff", 8.0)),
            retry_statuses=frozenset(statuses) if statuses else DEFAULT_RETRY_STATUSES,
        )


__all__ = ["RetryPolicy", "BackoffRetry", "IDEMPOTENT_METHODS", "DEFAULT_RETRY_STATUSES"]
