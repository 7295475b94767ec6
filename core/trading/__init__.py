"""
Broker-agnostic order models and the order client interface.
"""

from .interfaces import BrokerOrderClient
from .models import OrderInstruction, OrderResult, OrderStatus, summarize_results

__all__ = [
    "BrokerOrderClient",
    "OrderInstruction",
    "OrderResult",
    "OrderStatus",
    "summarize_results",
]
