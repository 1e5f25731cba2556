"""
Pure domain layer.

Value objects and the clock abstraction, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (other than the injectable Clock)
- I/O

All domain objects are immutable and deterministic.
"""

from fincalc_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fincalc_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from fincalc_kernel.domain.values import (
    AccountingPeriod,
    Currency,
    Money,
    as_money,
    sum_money,
)

__all__ = [
    # Value objects
    "AccountingPeriod",
    "Currency",
    "Money",
    "as_money",
    "sum_money",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Currency
    "CurrencyRegistry",
    "CurrencyInfo",
]
