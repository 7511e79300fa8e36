"""Error taxonomy for live sessions."""

from __future__ import annotations


class AsclepioError(RuntimeError):
    """Base class for errors raised by this package."""


class DeviceUnavailable(AsclepioError):
    """Raised when the microphone cannot be opened or permission is denied."""


class ChannelError(AsclepioError):
    """Raised when the streaming channel cannot be established."""


class ChannelAlreadyOpen(AsclepioError):
    """Raised when a channel is opened twice without closing it."""


class ToolCallMalformed(AsclepioError):
    """Raised when a tool invocation lacks a required argument."""


class FinalizeFailed(AsclepioError):
    """Raised when the summarization response cannot be used."""


class PersistenceFailed(AsclepioError):
    """Raised when the history blob cannot be read or written."""


class SessionBusy(AsclepioError):
    """Raised when a session is requested while another one is active."""


class InvalidTransition(AsclepioError):
    """Raised on a session state change the state machine does not allow."""
