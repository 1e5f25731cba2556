"""Currency registry: which codes the engine accepts and how precisely each is booked."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    decimal_places: int
    name: str


class CurrencyRegistry:
    """Registry of the currencies the engine accepts.

    The engine books in IDR. The other entries exist so imported statements
    in a foreign currency are rejected by a currency-mismatch check rather
    than an unknown-code error.
    """

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        # ISO lists 2 minor digits for IDR; rupiah is booked in whole units.
        "IDR": CurrencyInfo("IDR", 0, "Indonesian Rupiah"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
    }

    DEFAULT_CODE: ClassVar[str] = "IDR"

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def _info(cls, code: str) -> CurrencyInfo:
        try:
            return cls._CURRENCIES[code]
        except KeyError:
            raise ValueError(f"Unknown currency code: {code}") from None

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Decimal places for a registered code (ValueError otherwise)."""
        return cls._info(code).decimal_places
