"""
Correlation IDs for tracing one webhook call through verification, credential
lookup and every order it fans out to.
"""

import uuid
import contextvars
from typing import Any, Dict, Optional

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)
_correlation_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    'correlation_context', default={}
)


class CorrelationIdManager:
    """Per-request correlation state held in context variables.

    Values set inside a request handler are visible to every coroutine it
    awaits, including order tasks started by ``asyncio.gather``.
    """

    @staticmethod
    def generate_correlation_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def set_correlation_id(correlation_id: str) -> str:
        _correlation_id.set(correlation_id)
        return correlation_id

    @staticmethod
    def get_correlation_id() -> Optional[str]:
        return _correlation_id.get()

    @staticmethod
    def ensure_correlation_id() -> str:
        """Return the current ID, creating one if the context has none."""
        current = _correlation_id.get()
        if current is None:
            current = CorrelationIdManager.set_correlation_id(
                CorrelationIdManager.generate_correlation_id()
            )
        return current

    @staticmethod
    def set_correlation_context(**kwargs) -> Dict[str, Any]:
        """Merge ``kwargs`` (request_id, method, path...) into the context."""
        context = {**_correlation_context.get(), **kwargs}
        _correlation_context.set(context)
        return context

    @staticmethod
    def get_correlation_context() -> Dict[str, Any]:
        return dict(_correlation_context.get())

    @staticmethod
    def clear_correlation() -> None:
        _correlation_id.set(None)
        _correlation_context.set({})
