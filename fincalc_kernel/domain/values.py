"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the foundational value types for every calculation: Currency,
    Money and AccountingPeriod. These replace primitive types (Decimal, str)
    wherever financial data appears in engine logic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine. No outward dependencies except
    fincalc_kernel.domain.currency (CurrencyRegistry).

Invariants enforced:
    - Monetary amounts are Decimal, never float. Non-Decimal inputs are
      converted through ``str`` so ``0.1`` stays ``Decimal("0.1")``.
    - Currency codes are validated at construction time.
    - Rounding precision is derived from the currency, never hardcoded.

Failure modes:
    - ValueError on construction with invalid amounts or currencies.
    - ValueError when arithmetic mixes different currencies.
    - InvalidPeriodError when a period string is not ``YYYY-MM``.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering

from fincalc_kernel.domain.currency import CurrencyRegistry
from fincalc_kernel.exceptions import InvalidPeriodError


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO currency code, uppercased and checked against CurrencyRegistry.

    The registry decides the booked precision: IDR books whole rupiah.
    """

    code: str

    def __post_init__(self) -> None:
        code = (self.code or "").strip().upper()
        if not CurrencyRegistry.is_valid(code):
            raise ValueError(f"Invalid currency code: {self.code}")
        object.__setattr__(self, "code", code)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def quantum(self) -> Decimal:
        """Smallest booked unit: ``Decimal("1")`` for IDR, ``Decimal("0.01")`` for USD."""
        return Decimal(1).scaleb(-self.decimal_places)

    def __str__(self) -> str:
        return self.code


def _scalar(value: Decimal | int | str) -> Decimal | None:
    """Scalar operand for Money arithmetic, or None when unsupported."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return Decimal(str(value))
    return None


@total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """
    Exact amount in one currency.

    Contract:
        Every figure an engine produces is Money. Amounts are Decimal, so
        IDR values in the billions add up without drift.

    Guarantees:
        - Immutable and hashable.
        - Arithmetic and ordering between two currencies raise ValueError.

    Non-goals:
        - No currency conversion.
        - No implicit rounding; callers round once, at the end, via ``round``.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        amount = self.amount
        if not isinstance(amount, Decimal):
            try:
                amount = Decimal(str(amount))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount!r}") from e
        if not amount.is_finite():
            raise ValueError(f"Invalid amount: {self.amount!r}")
        object.__setattr__(self, "amount", amount)

        currency = self.currency
        if isinstance(currency, str):
            currency = Currency(currency)
        elif not isinstance(currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(currency).__name__}")
        object.__setattr__(self, "currency", currency)

    @classmethod
    def of(
        cls,
        amount: Decimal | str | int,
        currency: str | Currency = CurrencyRegistry.DEFAULT_CODE,
    ) -> Money:
        """Build from a boundary value; strings are stripped first. Defaults to IDR."""
        if isinstance(amount, str):
            amount = amount.strip()
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency = CurrencyRegistry.DEFAULT_CODE) -> Money:
        return cls(amount=Decimal(0), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount.is_zero()

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def _with(self, amount: Decimal) -> Money:
        return Money(amount=amount, currency=self.currency)

    def _other_amount(self, other: Money, op: str) -> Decimal:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {op} {self.currency} and {other.currency} amounts"
            )
        return other.amount

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Quantize to the currency's smallest unit (half-up unless told otherwise)."""
        return self._with(self.amount.quantize(self.currency.quantum, rounding=rounding))

    def floor_to(self, unit: Decimal | int) -> Money:
        """Truncate toward zero to a multiple of ``unit`` (e.g. 1000 for a PPh21 base)."""
        unit = Decimal(str(unit))
        if unit <= 0:
            raise ValueError(f"Rounding unit must be positive, got {unit}")
        return self._with((self.amount // unit) * unit)

    def clamp_non_negative(self) -> Money:
        return Money.zero(self.currency) if self.amount < 0 else self

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self._with(self.amount + self._other_amount(other, "add"))

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self._with(self.amount - self._other_amount(other, "subtract"))

    def __neg__(self) -> Money:
        return self._with(-self.amount)

    def __abs__(self) -> Money:
        return self._with(abs(self.amount))

    def __mul__(self, factor: Decimal | int | str) -> Money:
        factor = _scalar(factor)
        if factor is None:
            return NotImplemented
        return self._with(self.amount * factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        divisor = _scalar(divisor)
        if divisor is None:
            return NotImplemented
        return self._with(self.amount / divisor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < self._other_amount(other, "compare")

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency.code!r})"


def as_money(
    value: Money | Decimal | str | int | None,
    currency: str | Currency = CurrencyRegistry.DEFAULT_CODE,
) -> Money:
    """Coerce a boundary value to Money; ``None`` becomes zero."""
    if isinstance(value, Money):
        return value
    if value is None:
        return Money.zero(currency)
    return Money.of(value, currency)


def sum_money(values, currency: str | Currency = CurrencyRegistry.DEFAULT_CODE) -> Money:
    """Sum an iterable of Money, returning zero in ``currency`` when empty."""
    total = Money.zero(currency)
    for value in values:
        total = total + value
    return total


_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, slots=True, order=True)
class AccountingPeriod:
    """
    Calendar month accounting period, written ``YYYY-MM``.

    Guarantees:
        - Immutable, hashable and totally ordered (year, month).
        - ``str(period)`` round-trips through ``AccountingPeriod.parse``.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12 or not 1900 <= self.year <= 9999:
            raise InvalidPeriodError(f"{self.year:04d}-{self.month:02d}")

    @classmethod
    def parse(cls, value: str | AccountingPeriod) -> AccountingPeriod:
        if isinstance(value, AccountingPeriod):
            return value
        match = _PERIOD_RE.match(value.strip()) if isinstance(value, str) else None
        if match is None:
            raise InvalidPeriodError(str(value))
        return cls(year=int(match.group(1)), month=int(match.group(2)))

    @classmethod
    def containing(cls, day: date) -> AccountingPeriod:
        """Period that contains the given date."""
        return cls(year=day.year, month=day.month)

    def next(self) -> AccountingPeriod:
        if self.month == 12:
            return AccountingPeriod(year=self.year + 1, month=1)
        return AccountingPeriod(year=self.year, month=self.month + 1)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def months_since(self, start: date) -> int:
        """1-based index of this period counted from the month of ``start``.

        The month containing ``start`` is period 1; earlier periods give
        zero or a negative number.
        """
        return (self.year - start.year) * 12 + (self.month - start.month) + 1

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
