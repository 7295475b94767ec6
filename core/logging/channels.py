"""
Logging channel definitions for the DipSip relay.
Every channel logger binds a ``channel`` field so records can be filtered downstream.
"""

from enum import Enum
from typing import Dict


class LogChannel(str, Enum):
    """Logging channels for different components."""

    APPLICATION = "application"  # General application logs
    TRADING = "trading"          # Order placement
    API = "api"                  # API requests/responses
    AUDIT = "audit"              # Webhook authentication decisions
    ERROR = "error"              # Error logs


# Component to channel mapping
COMPONENT_CHANNEL_MAP: Dict[str, LogChannel] = {
    "webhook": LogChannel.API,
    "api": LogChannel.API,
    "dispatcher": LogChannel.TRADING,
    "order_executor": LogChannel.TRADING,
    "trading": LogChannel.TRADING,
    "credentials": LogChannel.AUDIT,
    "security": LogChannel.AUDIT,
    "audit": LogChannel.AUDIT,
    "error": LogChannel.ERROR,
}


def get_channel_for_component(component: str) -> LogChannel:
    """Get the appropriate logging channel for a component."""
    return COMPONENT_CHANNEL_MAP.get(component.lower(), LogChannel.APPLICATION)
