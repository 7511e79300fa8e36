"""Data models for Asclepio."""

from __future__ import annotations

import enum
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


class NoteKind(str, enum.Enum):
    TIP = "tip"
    QA = "qa"
    CONTEXT = "context"


class SessionState(str, enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FINALIZING = "finalizing"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Note:
    type: NoteKind
    content: str
    question: Optional[str] = None
    topic: Optional[str] = None
    id: str = field(default_factory=new_id)

    @classmethod
    def tip(cls, text: str) -> "Note":
        return cls(type=NoteKind.TIP, content=text)

    @classmethod
    def qa(cls, question: str, answer: str) -> "Note":
        return cls(type=NoteKind.QA, content=answer, question=question)

    @classmethod
    def context(cls, topic: str, explanation: str) -> "Note":
        return cls(type=NoteKind.CONTEXT, content=explanation, topic=topic)

    @property
    def heading(self) -> str:
        """Card heading: the question, the topic, or the tip itself."""
        if self.type is NoteKind.QA:
            return self.question or ""
        if self.type is NoteKind.CONTEXT:
            return self.topic or ""
        return self.content


@dataclass(frozen=True)
class SessionRecord:
    id: str
    title: str
    date: int  # epoch milliseconds
    transcription: str
    notes: List[Note]
    report: str


def note_to_dict(note: Note) -> Dict[str, Any]:
    data = asdict(note)
    data["type"] = note.type.value
    return {key: value for key, value in data.items() if value is not None}


def note_from_dict(data: Dict[str, Any]) -> Note:
    return Note(
        id=str(data.get("id") or new_id()),
        type=NoteKind(data.get("type", "tip")),
        content=str(data.get("content", "")),
        question=data.get("question"),
        topic=data.get("topic"),
    )


def record_to_dict(record: SessionRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "date": record.date,
        "transcription": record.transcription,
        "notes": [note_to_dict(note) for note in record.notes],
        "report": record.report,
    }


def record_from_dict(data: Dict[str, Any]) -> SessionRecord:
    return SessionRecord(
        id=str(data["id"]),
        title=str(data.get("title", "")),
        date=int(data.get("date", 0)),
        transcription=str(data.get("transcription", "")),
        notes=[note_from_dict(item) for item in data.get("notes", [])],
        report=str(data.get("report", "")),
    )
