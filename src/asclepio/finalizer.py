"""Session report and title generation."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence

from .errors import FinalizeFailed
from .models import Note, NoteKind, SessionRecord, new_id

logger = logging.getLogger(__name__)

NO_TRANSCRIPT_REPORT = "No se grabó ninguna transcripción."
ERROR_REPORT = "Ocurrió un error al generar el informe de la sesión."
ERROR_MARKER = "(Error)"


def default_title(now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%d/%m/%Y %H:%M:%S")
    return f"Sesión del {stamp}"


def flatten_notes(notes: Sequence[Note]) -> str:
    lines = []
    for note in notes:
        if note.type is NoteKind.QA:
            lines.append(f"- P: {note.question} R: {note.content}")
        elif note.type is NoteKind.CONTEXT:
            lines.append(f"- {note.topic}: {note.content}")
        else:
            lines.append(f"- {note.content}")
    return "\n".join(lines)


def build_report_prompt(transcript: str, notes: Sequence[Note]) -> str:
    return (
        "Basado en la siguiente transcripción y notas de una clase o reunión, genera "
        "un título conciso (máximo 10 palabras) y un informe completo en formato "
        "Markdown. El informe debe estructurar la información clave, los conceptos "
        "principales discutidos, las preguntas respondidas y las tareas o puntos "
        "importantes a recordar. Responde únicamente con un objeto JSON con las "
        "claves \"title\" y \"report\".\n\n"
        f"Transcripción:\n\"{transcript}\"\n\n"
        f"Notas Tomadas:\n{flatten_notes(notes)}"
    )


def parse_report_response(content: Optional[str]) -> Dict[str, str]:
    try:
        data = json.loads(content or "")
    except (TypeError, ValueError) as exc:
        raise FinalizeFailed(f"Malformed JSON response: {exc}") from exc
    if not isinstance(data, dict):
        raise FinalizeFailed("Response is not a JSON object.")
    result = {}
    for key in ("title", "report"):
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            raise FinalizeFailed(f"Response is missing '{key}'.")
        result[key] = value.strip()
    return result


class SessionFinalizer:
    """Turns the final transcript and notes into a SessionRecord.

    ``finalize`` never raises: an empty transcript skips the remote call and
    any remote failure yields a record with an error title and fixed report.
    """

    def __init__(
        self,
        client=None,
        model: str = "gpt-4o-mini",
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self.model = model
        self._clock = clock

    async def finalize(self, transcript: str, notes: Sequence[Note]) -> SessionRecord:
        notes = list(notes)
        if not transcript.strip():
            return self._record(default_title(), NO_TRANSCRIPT_REPORT, transcript, notes)
        try:
            result = await self.summarize(transcript, notes)
        except Exception as exc:
            logger.exception("Error generating report: %s", exc)
            return self._record(
                f"{default_title()} {ERROR_MARKER}", ERROR_REPORT, transcript, notes
            )
        return self._record(result["title"], result["report"], transcript, notes)

    async def summarize(self, transcript: str, notes: Sequence[Note]) -> Dict[str, str]:
        if self._client is None:
            raise FinalizeFailed("No summarization client configured.")
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": build_report_prompt(transcript, notes)}],
            response_format={"type": "json_object"},
        )
        return parse_report_response(response.choices[0].message.content)

    def _record(self, title: str, report: str, transcript: str, notes) -> SessionRecord:
        return SessionRecord(
            id=new_id(),
            title=title,
            date=int(self._clock() * 1000),
            transcription=transcript,
            notes=list(notes),
            report=report,
        )
