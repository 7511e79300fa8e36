"""Per-session transcript and note state."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .models import Note

logger = logging.getLogger(__name__)


class ActiveNotePolicy(str, enum.Enum):
    """What happens to an unarchived card when a new one replaces it."""

    DROP = "drop"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class NoteSnapshot:
    transcript: str
    notes: Tuple[Note, ...]


class NoteModel:
    """Transcript, archived notes and the single active card of one session.

    All mutations are synchronous and never fail. Tips skip the active slot and
    go straight to the archive; answers and context cards take the active slot.
    """

    def __init__(self, policy: ActiveNotePolicy = ActiveNotePolicy.DROP) -> None:
        self.policy = ActiveNotePolicy(policy)
        self._transcript: List[str] = []
        self._archived: List[Note] = []
        self._active: Optional[Note] = None

    @property
    def transcript(self) -> str:
        return "".join(self._transcript)

    @property
    def archived(self) -> List[Note]:
        return list(self._archived)

    @property
    def active(self) -> Optional[Note]:
        return self._active

    def append_transcript(self, text: str) -> None:
        self._transcript.append(text)

    def append_turn_boundary(self) -> None:
        self._transcript.append(" ")

    def add_tip(self, text: str) -> Note:
        note = Note.tip(text)
        self._archived.append(note)
        return note

    def set_active_qa(self, question: str, answer: str) -> Note:
        return self._activate(Note.qa(question, answer))

    def set_active_context(self, topic: str, explanation: str) -> Note:
        return self._activate(Note.context(topic, explanation))

    def _activate(self, note: Note) -> Note:
        previous = self._active
        if previous is not None:
            if self.policy is ActiveNotePolicy.ARCHIVE:
                self._archived.append(previous)
            else:
                logger.debug("Discarding unarchived %s card %s", previous.type.value, previous.id)
        self._active = note
        return note

    def archive_active(self) -> Optional[Note]:
        note = self._active
        if note is None:
            return None
        self._archived.append(note)
        self._active = None
        return note

    def snapshot(self) -> NoteSnapshot:
        notes = list(self._archived)
        if self._active is not None:
            notes.append(self._active)
        return NoteSnapshot(transcript=self.transcript, notes=tuple(notes))

    def reset(self) -> None:
        self._transcript = []
        self._archived = []
        self._active = None
