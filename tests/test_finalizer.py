import asyncio
import json
from types import SimpleNamespace

from asclepio.finalizer import (
    ERROR_MARKER,
    ERROR_REPORT,
    NO_TRANSCRIPT_REPORT,
    SessionFinalizer,
    build_report_prompt,
)
from asclepio.models import Note


class _FakeCompletions:
    def __init__(self, behavior):
        self.behavior = behavior
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.behavior, Exception):
            raise self.behavior
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.behavior))]
        )


class _FakeClient:
    def __init__(self, behavior):
        self.completions = _FakeCompletions(behavior)
        self.chat = SimpleNamespace(completions=self.completions)


def test_empty_transcript_skips_remote_call():
    client = _FakeClient(RuntimeError("should not be called"))
    finalizer = SessionFinalizer(client)
    record = asyncio.run(finalizer.finalize("   ", [Note.tip("x")]))
    assert client.completions.calls == []
    assert record.report == NO_TRANSCRIPT_REPORT
    assert record.title.startswith("Sesión del ")
    assert [n.content for n in record.notes] == ["x"]


def test_successful_summary():
    payload = json.dumps({"title": "Antídotos", "report": "# Informe"})
    client = _FakeClient(payload)
    finalizer = SessionFinalizer(client, model="summary-model", clock=lambda: 1700000000.5)
    record = asyncio.run(finalizer.finalize("Hola mundo", []))
    assert record.title == "Antídotos"
    assert record.report == "# Informe"
    assert record.date == 1700000000500
    call = client.completions.calls[0]
    assert call["model"] == "summary-model"
    assert call["response_format"] == {"type": "json_object"}
    assert "Hola mundo" in call["messages"][0]["content"]


def test_remote_failure_degrades_to_error_record():
    client = _FakeClient(ConnectionError("offline"))
    started = 1700000000000
    record = asyncio.run(SessionFinalizer(client).finalize("Hola", []))
    assert ERROR_MARKER in record.title
    assert record.report == ERROR_REPORT
    assert record.id
    assert record.date >= started


def test_malformed_or_incomplete_json_degrades():
    for content in ("not json", json.dumps(["list"]), json.dumps({"title": "Solo título"})):
        record = asyncio.run(SessionFinalizer(_FakeClient(content)).finalize("Hola", []))
        assert record.report == ERROR_REPORT
        assert ERROR_MARKER in record.title


def test_missing_client_degrades():
    record = asyncio.run(SessionFinalizer(None).finalize("Hola", []))
    assert record.report == ERROR_REPORT


def test_records_get_unique_ids():
    finalizer = SessionFinalizer(None)
    ids = {asyncio.run(finalizer.finalize("", [])).id for _ in range(10)}
    assert len(ids) == 10


def test_prompt_flattens_notes():
    prompt = build_report_prompt(
        "texto",
        [Note.tip("Repasar"), Note.qa("¿Qué es X?", "Y"), Note.context("Tema", "Expl")],
    )
    assert "- Repasar" in prompt
    assert "- P: ¿Qué es X? R: Y" in prompt
    assert "- Tema: Expl" in prompt
