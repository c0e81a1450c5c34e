"""Exceptions raised by the bridge."""


class BridgeError(Exception):
    """Base class for every failure the bridge reports."""


class InvalidRequest(BridgeError):
    """The caller sent something we cannot act on (missing prompt, unknown model)."""


class NavigationFailed(BridgeError):
    """A tab could not be opened or navigated to its conversation."""


class ElementTimeout(BridgeError):
    """A required element or network exchange did not show up in time."""


class PromptEntryFailed(BridgeError):
    """The prompt input does not hold the text we typed."""


class LoginFailed(BridgeError):
    """Signing in to Venice failed."""


class ModelSelectionFailed(BridgeError):
    """The model picker did not end on the requested model (strict mode only)."""


class PageInteractionFailed(BridgeError):
    """The browser reported an error while driving the page."""
