"""
Venice AI Bridge - Browser automation + Local API

Automates the Venice chat web UI via a Playwright-driven browser and exposes it as:
  - HTTP API (POST /chat) for integration with other projects
  - CLI interface for direct prompts

Usage as a module:
    from venice_ai_bridge import AutomationService, BridgeConfig

    service = AutomationService(BridgeConfig.from_env())
    await service.launch()
    chat_id, result = await service.chat("What is quantum computing?")
    print(result.response)

    # Follow-up in the same conversation
    chat_id, result = await service.chat("Explain it simply", context_id=chat_id)
    await service.shutdown_and_close_all()
"""

__version__ = "0.1.0"

from .config import BridgeConfig
from .errors import (
    BridgeError,
    InvalidRequest,
    NavigationFailed,
    ElementTimeout,
    PromptEntryFailed,
    LoginFailed,
    ModelSelectionFailed,
    PageInteractionFailed,
)
from .models import AVAILABLE_MODELS, PromptResult, Reference, Session
from .service import AutomationService

__all__ = [
    "AutomationService",
    "BridgeConfig",
    "PromptResult",
    "Reference",
    "Session",
    "AVAILABLE_MODELS",
    "BridgeError",
    "InvalidRequest",
    "NavigationFailed",
    "ElementTimeout",
    "PromptEntryFailed",
    "LoginFailed",
    "ModelSelectionFailed",
    "PageInteractionFailed",
    "__version__",
]
