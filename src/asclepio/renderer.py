"""Markdown rendering of session records."""

from __future__ import annotations

from datetime import datetime
from typing import List, Sequence

from .models import Note, NoteKind, SessionRecord

VIEWS = {
    "report": "Informe Completo",
    "transcription": "Transcripción",
    "qa": "Preguntas y Respuestas",
    "notes": "Notas Clave",
}

NO_QUESTIONS = "No se hicieron preguntas en esta sesión."
NO_NOTES = "No se tomaron notas clave en esta sesión."
NO_HISTORY = "No hay sesiones guardadas."


def _yaml_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f"\"{escaped}\""


def _clean_text(value: str) -> str:
    return " ".join(value.split())


def format_date(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%d/%m/%Y %H:%M:%S")


def render_note_lines(note: Note, expanded: bool = True) -> List[str]:
    if note.type is NoteKind.TIP:
        return [f"- {_clean_text(note.content)}"]
    lines = [f"- **{_clean_text(note.heading)}**"]
    if expanded:
        lines.append(f"  {_clean_text(note.content)}")
    return lines


def questions(record: SessionRecord) -> List[Note]:
    return [n for n in record.notes if n.type is NoteKind.QA]


def key_notes(record: SessionRecord) -> List[Note]:
    return [n for n in record.notes if n.type in (NoteKind.TIP, NoteKind.CONTEXT)]


def _render_notes(notes: Sequence[Note], empty: str) -> List[str]:
    if not notes:
        return [empty]
    lines: List[str] = []
    for note in notes:
        lines.extend(render_note_lines(note))
    return lines


def render_view(record: SessionRecord, view: str = "report") -> str:
    if view not in VIEWS:
        raise ValueError(f"Unknown view '{view}'. Use one of: {', '.join(VIEWS)}")
    if view == "report":
        return record.report
    if view == "transcription":
        return record.transcription
    if view == "qa":
        return "\n".join(_render_notes(questions(record), NO_QUESTIONS))
    return "\n".join(_render_notes(key_notes(record), NO_NOTES))


def render_session(record: SessionRecord) -> str:
    lines: List[str] = []
    lines.append("---")
    lines.append("schema: 1")
    lines.append(f"id: {_yaml_quote(record.id)}")
    lines.append(f"title: {_yaml_quote(record.title)}")
    lines.append(f"date: {_yaml_quote(format_date(record.date))}")
    lines.append(f"notes: {len(record.notes)}")
    lines.append("---")
    lines.append("")
    lines.append(f"# {_clean_text(record.title)}")
    lines.append("")
    for view, heading in VIEWS.items():
        lines.append(f"## {heading}")
        lines.append("")
        body = render_view(record, view)
        lines.append(body if body.strip() else "-")
        lines.append("")
    return "\n".join(lines)


def render_history(records: Sequence[SessionRecord]) -> str:
    if not records:
        return NO_HISTORY
    return "\n".join(
        f"{record.id[:8]}  {format_date(record.date)}  {_clean_text(record.title)}"
        for record in records
    )
