"""
events.py - Notifications emitted for external indexers

Events are recorded while an operation runs and only published once the
operation commits. A rolled-back operation publishes nothing.

Published events are wrapped in an EventRecord carrying a monotonic sequence
number, the logical time of publication and the operation that produced them.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Type, TypeVar, Union


@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """Collateral left user's position. recipient differs from user during liquidation."""
    user: str
    asset: str
    amount: int
    recipient: str


@dataclass(frozen=True, slots=True)
class DebtMinted:
    user: str
    amount: int


@dataclass(frozen=True, slots=True)
class DebtBurned:
    user: str
    amount: int


@dataclass(frozen=True, slots=True)
class Liquidated:
    liquidator: str
    target: str
    asset: str
    debt_covered: int
    collateral_seized: int


Event = Union[CollateralDeposited, CollateralRedeemed, DebtMinted, DebtBurned, Liquidated]
E = TypeVar('E')


@dataclass(frozen=True, slots=True)
class EventRecord:
    """
    A published event.

    Attributes:
        sequence: Monotonic position in the log (starts at 0)
        timestamp: Logical time at which the operation committed
        operation: Name of the top-level operation (e.g., "mint_debt")
        event: The notification itself
    """
    sequence: int
    timestamp: datetime
    operation: str
    event: Event

    def __repr__(self) -> str:
        return f"#{self.sequence} [{self.operation}] {self.event!r}"


Subscriber = Callable[[EventRecord], None]


class EventLog:
    """
    Append-only log of published events with optional subscribers.

    Subscribers are called synchronously, in subscription order, after the
    producing operation has committed.
    """

    def __init__(self, verbose: bool = False):
        self.records: List[EventRecord] = []
        self.verbose = verbose
        self._pending: List[Event] = []
        self._subscribers: List[Subscriber] = []
        # (record, exception) for every subscriber call that raised
        self.delivery_failures: List[Tuple[EventRecord, Exception]] = []

    # ------------------------------------------------------------------
    # Recording (called by ledgers and engines inside an operation)
    # ------------------------------------------------------------------

    def record(self, event: Event) -> None:
        """Buffer an event until the current operation commits."""
        self._pending.append(event)

    @property
    def pending(self) -> Tuple[Event, ...]:
        """Events recorded but not yet published."""
        return tuple(self._pending)

    def pending_mark(self) -> int:
        return len(self._pending)

    def discard_after(self, mark: int) -> None:
        del self._pending[mark:]

    def publish(self, operation: str, timestamp: datetime) -> Tuple[EventRecord, ...]:
        """
        Publish every buffered event and notify subscribers.

        The producing operation has already committed, so a subscriber that
        raises cannot abort it. The failure is kept in delivery_failures and
        the remaining subscribers and records are still delivered.
        """
        published = []
        pending, self._pending = self._pending, []
        for event in pending:
            rec = EventRecord(len(self.records), timestamp, operation, event)
            self.records.append(rec)
            published.append(rec)
            if self.verbose:
                print(f"✓ {rec!r}")
        for rec in published:
            for callback in list(self._subscribers):
                try:
                    callback(rec)
                except Exception as e:
                    self.delivery_failures.append((rec, e))
                    if self.verbose:
                        print(f"✗ SUBSCRIBER FAILED on #{rec.sequence}: {type(e).__name__}: {e}")
        return tuple(published)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for future events.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [r.event for r in self.records if isinstance(r.event, event_type)]

    def last(self) -> Optional[EventRecord]:
        return self.records[-1] if self.records else None

    def __len__(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return f"EventLog({len(self.records)} records, {len(self._pending)} pending)"
