from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from core.utils.exceptions import InvalidInstructionError

MISSING_FIELDS_MESSAGE = "Missing symbol or quantity"
INVALID_QUANTITY_MESSAGE = "Invalid quantity"
UNKNOWN_SYMBOL = "unknown"


def round_half_up(value: Any) -> int:
    """Round to the nearest integer, halves away from zero for positives (10.5 -> 11)."""
    if isinstance(value, bool):
        raise InvalidOperation("boolean quantity")
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class OrderInstruction:
    """One validated item of a webhook batch."""

    symbol: str
    quantity: int

    @classmethod
    def from_payload(cls, item: Any) -> "OrderInstruction":
        """Validate a raw batch item.

        Raises:
            InvalidInstructionError: missing/falsy symbol or quantity, or a
                quantity that is not numeric or rounds below one unit
        """
        if not isinstance(item, Mapping):
            raise InvalidInstructionError(MISSING_FIELDS_MESSAGE, symbol=UNKNOWN_SYMBOL)

        symbol = item.get("symbol")
        quantity = item.get("quantity")
        reported_symbol = UNKNOWN_SYMBOL if symbol is None else str(symbol)

        if not symbol or not quantity:
            raise InvalidInstructionError(MISSING_FIELDS_MESSAGE, symbol=reported_symbol)
        if not isinstance(symbol, str):
            raise InvalidInstructionError(MISSING_FIELDS_MESSAGE, symbol=reported_symbol)

        try:
            rounded = round_half_up(quantity)
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidInstructionError(INVALID_QUANTITY_MESSAGE, symbol=symbol) from None
        if rounded < 1:
            raise InvalidInstructionError(INVALID_QUANTITY_MESSAGE, symbol=symbol)

        return cls(symbol=symbol, quantity=rounded)

    def to_order_form(self, defaults: Mapping[str, str]) -> Dict[str, Any]:
        """Merge with the fixed order template; item fields cannot override it."""
        form: Dict[str, Any] = dict(defaults)
        form["tradingsymbol"] = self.symbol
        form["quantity"] = self.quantity
        return form


class OrderStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class OrderResult(BaseModel):
    """Disposition of one batch item."""

    symbol: str
    status: OrderStatus
    data: Optional[Any] = Field(None, description="Upstream response on success")
    message: Optional[str] = Field(None, description="Failure reason on error")

    @classmethod
    def success(cls, symbol: str, data: Any) -> "OrderResult":
        return cls(symbol=symbol, status=OrderStatus.SUCCESS, data=data)

    @classmethod
    def error(cls, symbol: str, message: str) -> "OrderResult":
        return cls(symbol=symbol, status=OrderStatus.ERROR, message=message)

    @property
    def is_success(self) -> bool:
        return self.status is OrderStatus.SUCCESS


def summarize_results(results: List[OrderResult]) -> Dict[str, int]:
    """Counts by status for logging and responses."""
    succeeded = sum(1 for r in results if r.is_success)
    return {
        "total": len(results),
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }
