"""Exceptions raised by the bridge. Timeouts and empty answers are not errors."""


class ChatGPTBridgeError(Exception):
    """Base class for every failure the dispatch layer reports."""


class AccessError(ChatGPTBridgeError):
    """ChatGPT is not running and could not be launched or activated."""


class InjectionError(ChatGPTBridgeError):
    """Clipboard or keystroke simulation failed while sending the prompt."""


class ScrapeError(ChatGPTBridgeError):
    """Reading the conversation list out of the window failed."""


class InvalidToolCall(ChatGPTBridgeError):
    """Tool arguments did not match the tool's input schema."""
