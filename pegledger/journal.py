"""
journal.py - All-or-nothing execution of top-level operations

Every state-changing engine operation runs inside Journal.operation():

    with journal.operation("mint_debt"):
        debt.increase(user, amount)
        health.assert_safe(user)
        token.mint(user, amount)

On entry the journal snapshots both ledgers and marks the event buffer. If
anything inside the block raises, both ledgers are restored, the buffered
events are discarded and the exception propagates unchanged. If the block
completes, the buffered events are published.

The journal is also the call-depth guard: while one operation is in flight,
entering another (for example from inside a token or transfer callback)
raises ReentrantCallError. Read-only queries are not guarded and observe the
in-flight, already-updated ledgers.
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional

from .core import ReentrantCallError
from .events import EventLog
from .ledger import CollateralLedger, DebtLedger


class Journal:
    """Unit of work shared by the accounting and liquidation engines."""

    MAX_DEPTH = 1

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: DebtLedger,
        events: EventLog,
        clock: Callable[[], datetime],
        verbose: bool = False,
    ):
        self.collateral = collateral
        self.debt = debt
        self.events = events
        self.clock = clock
        self.verbose = verbose
        self._depth = 0
        self._active: Optional[str] = None

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def active_operation(self) -> Optional[str]:
        return self._active

    @contextmanager
    def operation(self, name: str) -> Iterator[None]:
        """
        Run a block atomically.

        Raises:
            ReentrantCallError: If another operation is already in flight.
        """
        if self._depth >= self.MAX_DEPTH:
            raise ReentrantCallError(
                f"{name} entered while {self._active} is in progress"
            )

        positions = self.collateral.snapshot()
        debts = self.debt.snapshot()
        mark = self.events.pending_mark()

        self._depth += 1
        self._active = name
        try:
            yield
        except BaseException as e:
            self.collateral.restore(positions)
            self.debt.restore(debts)
            self.events.discard_after(mark)
            if self.verbose:
                print(f"✗ REJECTED {name}: {type(e).__name__}: {e}")
            raise
        finally:
            self._depth -= 1
            self._active = None

        self.events.publish(name, self.clock())

    def __repr__(self) -> str:
        return f"Journal(active={self._active!r})"
