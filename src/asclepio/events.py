"""Inbound events delivered by a streaming channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


@dataclass(frozen=True)
class TranscriptDelta:
    text: str


@dataclass(frozen=True)
class TurnComplete:
    pass


@dataclass(frozen=True)
class FunctionInvocation:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCall:
    invocations: List[FunctionInvocation] = field(default_factory=list)


@dataclass(frozen=True)
class ChannelFailed:
    detail: str


@dataclass(frozen=True)
class ChannelClosed:
    pass


ChannelEvent = Union[TranscriptDelta, TurnComplete, ToolCall, ChannelFailed, ChannelClosed]

TERMINAL_EVENTS = (ChannelFailed, ChannelClosed)


def is_terminal(event: ChannelEvent) -> bool:
    return isinstance(event, TERMINAL_EVENTS)
