"""Dispatch of inbound channel events onto the note model."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Tuple

from .errors import ToolCallMalformed
from .events import (
    ChannelClosed,
    ChannelEvent,
    ChannelFailed,
    FunctionInvocation,
    ToolCall,
    TranscriptDelta,
    TurnComplete,
)
from .models import Note
from .notes import NoteModel
from .tools import ADD_NOTE, ANSWER_QUESTION, PROVIDE_CONTEXT, REQUIRED_ARGS

logger = logging.getLogger(__name__)


def required_args(invocation: FunctionInvocation) -> Tuple[str, ...]:
    """Return the required string arguments in declaration order.

    Raises ToolCallMalformed when one is missing, empty or not a string.
    """
    values = []
    for key in REQUIRED_ARGS[invocation.name]:
        value = invocation.args.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ToolCallMalformed(f"{invocation.name} missing '{key}'")
        values.append(value)
    return tuple(values)


class EventInterpreter:
    def __init__(
        self,
        notes: NoteModel,
        speak: Callable[[str], None],
        *,
        declared_tools: Iterable[str] = (ADD_NOTE, ANSWER_QUESTION, PROVIDE_CONTEXT),
        on_end: Optional[Callable[[Optional[str]], None]] = None,
        on_change: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.notes = notes
        self._speak = speak
        self._declared = frozenset(declared_tools)
        self._on_end = on_end
        self._on_change = on_change

    def handle(self, event: ChannelEvent) -> None:
        if isinstance(event, TranscriptDelta):
            self.notes.append_transcript(event.text)
            self._changed("transcript")
        elif isinstance(event, TurnComplete):
            self.notes.append_turn_boundary()
            self._changed("transcript")
        elif isinstance(event, ToolCall):
            for invocation in event.invocations:
                self.handle_invocation(invocation)
        elif isinstance(event, ChannelFailed):
            logger.error("Channel error: %s", event.detail)
            self._end(event.detail)
        elif isinstance(event, ChannelClosed):
            self._end(None)

    def handle_invocation(self, invocation: FunctionInvocation) -> Optional[Note]:
        if invocation.name not in REQUIRED_ARGS or invocation.name not in self._declared:
            logger.debug("Ignoring undeclared tool call %r", invocation.name)
            return None
        try:
            args = required_args(invocation)
        except ToolCallMalformed as exc:
            logger.debug("Dropping malformed tool call: %s", exc)
            return None

        if invocation.name == ADD_NOTE:
            (tip,) = args
            note = self.notes.add_tip(tip)
            self._changed("note")
            self._say(f"Nota añadida: {note.content}")
        elif invocation.name == ANSWER_QUESTION:
            question, answer = args
            note = self.notes.set_active_qa(question, answer)
            self._changed("active")
            self._say(note.content)
        else:
            topic, explanation = args
            note = self.notes.set_active_context(topic, explanation)
            self._changed("active")
            self._say(f"{note.topic}: {note.content}")
        return note

    def _say(self, text: str) -> None:
        try:
            self._speak(text)
        except Exception:
            logger.warning("Speech output failed", exc_info=True)

    def _changed(self, what: str) -> None:
        if self._on_change is not None:
            self._on_change(what)

    def _end(self, detail: Optional[str]) -> None:
        if self._on_end is not None:
            self._on_end(detail)

