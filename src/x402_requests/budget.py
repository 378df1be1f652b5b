"""Budget ledger for x402 payments.

Enforces per-request, rolling-daily and lifetime spending limits, plus
optional domain and asset allowlists. Safety-first: budgets are enabled by
default so callers don't accidentally overspend.

Amounts are integers in the asset's smallest unit (e.g. 1_000_000 = 1 USDC).
"""

from __future__ import annotations

import itertools
import json
import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from x402_requests.exceptions import (
    AssetNotAllowedError,
    BudgetExceededError,
    DomainNotAllowedError,
    PolicyViolationError,
)

logger = logging.getLogger(__name__)

ONE_DAY_SECONDS = 86_400
ONE_WEEK_SECONDS = 7 * ONE_DAY_SECONDS

DEFAULT_MAX_PER_REQUEST = 1_000_000
DEFAULT_DAILY_BUDGET = 10_000_000
DEFAULT_TOTAL_BUDGET = 100_000_000

Clock = Callable[[], float]


def _require_amount(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _parse_amount(name: str, value: Any) -> int:
    # Config files may carry large amounts as decimal strings
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        value = int(value.strip())
    return _require_amount(name, value)


def _parse_list(name: str, value: Any) -> frozenset[str]:
    if value is None:
        return frozenset()
    # A bare string would otherwise become a set of characters
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError(f"{name} must be a list of strings, got {value!r}")
    if not all(isinstance(item, str) for item in value):
        raise ValueError(f"{name} must contain only strings")
    return frozenset(value)


@dataclass(frozen=True)
class BudgetPolicy:
    """Caller-defined spending limits. Immutable for the lifetime of a ledger.

    Args:
        max_per_request: Largest single payment allowed.
        daily_budget: Cap on spend since the last daily reset.
        total_budget: Cap on lifetime spend of the ledger.
        allowed_domains: If non-empty, only pay resources on these hosts.
        allowed_assets: If non-empty, only pay in these token addresses.
    """

    max_per_request: int = DEFAULT_MAX_PER_REQUEST
    daily_budget: int = DEFAULT_DAILY_BUDGET
    total_budget: int = DEFAULT_TOTAL_BUDGET
    allowed_domains: frozenset[str] = frozenset()
    allowed_assets: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        _require_amount("max_per_request", self.max_per_request)
        _require_amount("daily_budget", self.daily_budget)
        _require_amount("total_budget", self.total_budget)
        # Normalize so membership checks are case-insensitive
        object.__setattr__(
            self,
            "allowed_domains",
            frozenset(d.strip().lower() for d in self.allowed_domains or ()),
        )
        object.__setattr__(
            self,
            "allowed_assets",
            frozenset(a.strip().lower() for a in self.allowed_assets or ()),
        )

    @classmethod
    def from_config(cls, section: Mapping[str, Any]) -> BudgetPolicy:
        """Build a policy from a config section using wire-style camelCase keys.

        Missing keys fall back to the defaults.
        """
        return cls(
            max_per_request=_parse_amount(
                "maxPerRequest", section.get("maxPerRequest", DEFAULT_MAX_PER_REQUEST)
            ),
            daily_budget=_parse_amount(
                "dailyBudget", section.get("dailyBudget", DEFAULT_DAILY_BUDGET)
            ),
            total_budget=_parse_amount(
                "totalBudget", section.get("totalBudget", DEFAULT_TOTAL_BUDGET)
            ),
            allowed_domains=_parse_list("allowedDomains", section.get("allowedDomains")),
            allowed_assets=_parse_list("allowedAssets", section.get("allowedAssets")),
        )


@dataclass(frozen=True)
class PaymentRecord:
    """A completed spend."""

    url: str
    domain: str
    amount: int
    asset: str
    timestamp: float = field(default_factory=time.time)
    pay_to: str = ""
    network: str = ""
    nonce: str = ""
    status_code: int | None = None


@dataclass(frozen=True)
class BudgetState:
    """Point-in-time snapshot of a ledger."""

    total_spent: int
    daily_spent: int
    last_daily_reset: float
    payments: tuple[PaymentRecord, ...]
    reserved: int = 0


@dataclass(frozen=True)
class Reservation:
    """An amount held against the budget while a payment is in flight."""

    id: int
    amount: int
    asset: str | None = None
    domain: str | None = None


class BudgetLedger:
    """Tracks spend against a BudgetPolicy.

    ``can_spend`` / ``record_payment`` are the plain check and record
    operations; ``reserve`` / ``commit`` / ``release`` make check-and-debit
    atomic so concurrent payments cannot jointly overspend.

    The daily counter resets lazily: at the start of every operation, if a
    day or more has passed since ``last_daily_reset``, the daily spend drops
    to zero and the reset time advances to now.
    """

    def __init__(self, policy: BudgetPolicy | None = None, clock: Clock = time.time):
        self.policy = policy or BudgetPolicy()
        self._clock = clock
        self._total_spent = 0
        self._daily_spent = 0
        self._last_daily_reset = clock()
        self._payments: list[PaymentRecord] = []
        self._reservations: dict[int, Reservation] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def now(self) -> float:
        """Current time according to the ledger's clock."""
        return self._clock()

    # ── Checks ───────────────────────────────────────────────────────────

    def check(
        self, amount: int, asset: str | None = None, domain: str | None = None
    ) -> None:
        """Verify a payment is admissible. Raises if not.

        Raises:
            DomainNotAllowedError: If domain is not in allowed_domains.
            AssetNotAllowedError: If asset is not in allowed_assets.
            BudgetExceededError: If any budget limit would be exceeded.
        """
        with self._lock:
            self._reset_daily_if_needed()
            self._check_locked(amount, asset, domain)

    def can_spend(
        self, amount: int, asset: str | None = None, domain: str | None = None
    ) -> bool:
        """Predicate form of ``check``. Never mutates spend or history."""
        try:
            self.check(amount, asset, domain)
        except PolicyViolationError:
            return False
        return True

    def _check_locked(self, amount: int, asset: str | None, domain: str | None) -> None:
        _require_amount("amount", amount)
        policy = self.policy

        if policy.allowed_domains and domain:
            if domain.strip().lower() not in policy.allowed_domains:
                raise DomainNotAllowedError(domain)

        if policy.allowed_assets and asset:
            if asset.strip().lower() not in policy.allowed_assets:
                raise AssetNotAllowedError(asset)

        if amount > policy.max_per_request:
            raise BudgetExceededError("per_request", policy.max_per_request, 0, amount)

        reserved = self._reserved_locked()

        daily = self._daily_spent + reserved
        if daily + amount > policy.daily_budget:
            raise BudgetExceededError("daily", policy.daily_budget, daily, amount)

        total = self._total_spent + reserved
        if total + amount > policy.total_budget:
            raise BudgetExceededError("total", policy.total_budget, total, amount)

    # ── Mutations ────────────────────────────────────────────────────────

    def record_payment(self, record: PaymentRecord) -> None:
        """Record a payment unconditionally. Callers check admissibility first."""
        _require_amount("amount", record.amount)
        with self._lock:
            self._reset_daily_if_needed()
            self._append_locked(record)

    def reserve(
        self, amount: int, asset: str | None = None, domain: str | None = None
    ) -> Reservation:
        """Check and hold ``amount`` in one step.

        The hold counts against the daily and total budgets until it is
        committed or released.

        Raises:
            PolicyViolationError: If the amount is not admissible.
        """
        with self._lock:
            self._reset_daily_if_needed()
            self._check_locked(amount, asset, domain)
            reservation = Reservation(
                id=next(self._ids), amount=amount, asset=asset, domain=domain
            )
            self._reservations[reservation.id] = reservation
            return reservation

    def commit(self, reservation: Reservation, record: PaymentRecord) -> None:
        """Convert a held reservation into a recorded payment."""
        if record.amount != reservation.amount:
            raise ValueError(
                f"Record amount {record.amount} does not match "
                f"reservation {reservation.id} amount {reservation.amount}"
            )
        with self._lock:
            self._reset_daily_if_needed()
            self._pop_reservation_locked(reservation)
            self._append_locked(record)

    def release(self, reservation: Reservation) -> None:
        """Drop a held reservation without recording anything."""
        with self._lock:
            self._pop_reservation_locked(reservation)

    def clear_history(self) -> None:
        """Forget payment records. Spend counters are left untouched."""
        with self._lock:
            self._payments.clear()

    def prune_expired_records(self, max_age_seconds: float = ONE_WEEK_SECONDS) -> int:
        """Drop records older than ``max_age_seconds``. Returns how many were dropped.

        Spend counters are not rewound.
        """
        with self._lock:
            self._reset_daily_if_needed()
            cutoff = self._clock() - max_age_seconds
            kept = [r for r in self._payments if r.timestamp >= cutoff]
            dropped = len(self._payments) - len(kept)
            self._payments = kept
            return dropped

    # ── Queries ──────────────────────────────────────────────────────────

    def get_daily_spend(self) -> int:
        with self._lock:
            self._reset_daily_if_needed()
            return self._daily_spent

    def get_total_spent(self) -> int:
        with self._lock:
            self._reset_daily_if_needed()
            return self._total_spent

    def get_remaining_budget(self) -> int:
        """Lifetime budget left, floored at zero."""
        with self._lock:
            self._reset_daily_if_needed()
            return max(self.policy.total_budget - self._total_spent, 0)

    def get_state(self) -> BudgetState:
        with self._lock:
            self._reset_daily_if_needed()
            return BudgetState(
                total_spent=self._total_spent,
                daily_spent=self._daily_spent,
                last_daily_reset=self._last_daily_reset,
                payments=tuple(self._payments),
                reserved=self._reserved_locked(),
            )

    def get_payment_history(self) -> list[PaymentRecord]:
        with self._lock:
            return list(self._payments)

    @property
    def payment_count(self) -> int:
        with self._lock:
            return len(self._payments)

    def spent_by_domain(self) -> dict[str, int]:
        """Sum of retained records per domain."""
        totals: dict[str, int] = {}
        for r in self.get_payment_history():
            totals[r.domain] = totals.get(r.domain, 0) + r.amount
        return totals

    def to_json(self) -> str:
        """Serialize retained records to JSON."""
        return json.dumps([asdict(r) for r in self.get_payment_history()], indent=2)

    # ── Internals (caller holds the lock) ────────────────────────────────

    def _reset_daily_if_needed(self) -> None:
        now = self._clock()
        if now - self._last_daily_reset >= ONE_DAY_SECONDS:
            logger.debug(f"x402: daily budget window reset (spent {self._daily_spent})")
            self._daily_spent = 0
            self._last_daily_reset = now

    def _reserved_locked(self) -> int:
        return sum(r.amount for r in self._reservations.values())

    def _append_locked(self, record: PaymentRecord) -> None:
        self._total_spent += record.amount
        self._daily_spent += record.amount
        self._payments.append(record)

    def _pop_reservation_locked(self, reservation: Reservation) -> None:
        if self._reservations.pop(reservation.id, None) is None:
            raise ValueError(f"Reservation {reservation.id} is not outstanding")

    def __len__(self) -> int:
        return self.payment_count

