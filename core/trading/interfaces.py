from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Protocol, runtime_checkable

if TYPE_CHECKING:
    from services.auth.models import SessionCredential


@runtime_checkable
class BrokerOrderClient(Protocol):
    """Order execution client interface for a broker.

    Implementations place exactly one order per call and raise a
    ``BrokerError`` subclass on failure.
    """

    async def place_order(self, order: Dict[str, Any], credential: "SessionCredential") -> Dict[str, Any]:
        ...
