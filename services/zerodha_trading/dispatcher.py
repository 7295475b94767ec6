from __future__ import annotations

import asyncio
import time
from typing import Any, List, Mapping, Optional, Sequence

from core.logging import get_trading_logger_safe, get_error_logger_safe
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from core.trading.interfaces import BrokerOrderClient
from core.trading.models import UNKNOWN_SYMBOL, OrderInstruction, OrderResult, summarize_results
from core.utils.exceptions import (
    BrokerAPIError,
    BrokerConnectionError,
    BrokerTimeoutError,
    InvalidInstructionError,
    create_error_context,
)
from services.auth.models import SessionCredential

BROKER = "zerodha"

DEFAULT_ORDER_DEFAULTS = {
    "exchange": "NSE",
    "transaction_type": "BUY",
    "order_type": "MARKET",
    "product": "CNC",
    "validity": "DAY",
}


class OrderDispatcher:
    """Fans a batch out into one order call per item.

    Each item is isolated: a validation failure, an upstream rejection or a
    network fault becomes that item's error result and never stops the rest.
    The returned list always has one entry per input item, in input order.
    """

    def __init__(
        self,
        order_client: BrokerOrderClient,
        max_concurrency: int = 1,
        order_defaults: Optional[Mapping[str, str]] = None,
        prometheus_metrics: Optional[PrometheusMetricsCollector] = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.order_client = order_client
        self.max_concurrency = max_concurrency
        self.order_defaults = dict(order_defaults or DEFAULT_ORDER_DEFAULTS)
        self.prom_metrics = prometheus_metrics
        self.logger = get_trading_logger_safe("dispatcher", broker=BROKER)
        self.error_logger = get_error_logger_safe("dispatcher_errors", broker=BROKER)

    async def dispatch(self, instructions: Sequence[Any], credential: SessionCredential) -> List[OrderResult]:
        """Place every item of ``instructions`` and return the per-item results."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(index: int, item: Any) -> OrderResult:
            async with semaphore:
                return await self._process_item(index, item, credential)

        # gather preserves argument order regardless of completion order
        results = list(await asyncio.gather(
            *(_bounded(index, item) for index, item in enumerate(instructions))
        ))

        summary = summarize_results(results)
        self.logger.info("Order placement process completed", **summary)
        if self.prom_metrics:
            self.prom_metrics.record_batch(summary["total"])
        return results

    async def _process_item(self, index: int, item: Any, credential: SessionCredential) -> OrderResult:
        try:
            instruction = OrderInstruction.from_payload(item)
        except InvalidInstructionError as e:
            self.logger.warning("Skipping order", index=index, symbol=e.symbol, reason=e.message)
            symbol = UNKNOWN_SYMBOL if e.symbol is None else e.symbol
            return self._record(OrderResult.error(symbol, e.message))

        order_form = instruction.to_order_form(self.order_defaults)
        self.logger.info(
            "Placing order",
            index=index,
            symbol=instruction.symbol,
            quantity=instruction.quantity,
            order_type=order_form.get("order_type"),
        )

        start = time.perf_counter()
        try:
            response = await self.order_client.place_order(order_form, credential)
        except BrokerAPIError as e:
            message = f"Kite API error: {e.message}"
            self._log_failure(e, index, instruction)
            return self._record(OrderResult.error(instruction.symbol, message))
        except BrokerTimeoutError as e:
            self._log_failure(e, index, instruction)
            return self._record(OrderResult.error(instruction.symbol, f"Timeout error: {e.message}"))
        except BrokerConnectionError as e:
            self._log_failure(e, index, instruction)
            return self._record(OrderResult.error(instruction.symbol, f"Network or request error: {e.message}"))
        except Exception as e:
            # Anything else is still confined to this item
            self._log_failure(e, index, instruction)
            return self._record(OrderResult.error(instruction.symbol, f"Unexpected error: {e}"))
        finally:
            if self.prom_metrics:
                self.prom_metrics.observe_order_latency(time.perf_counter() - start)

        self.logger.info("Order placed", index=index, symbol=instruction.symbol, response=response)
        return self._record(OrderResult.success(instruction.symbol, response))

    def _log_failure(self, error: Exception, index: int, instruction: OrderInstruction) -> None:
        self.error_logger.error(
            "Failed to place order",
            **create_error_context(
                error,
                "place_order",
                {"index": index, "symbol": instruction.symbol, "quantity": instruction.quantity},
            ),
        )

    def _record(self, result: OrderResult) -> OrderResult:
        if self.prom_metrics:
            self.prom_metrics.record_order(result.status.value)
        return result
