"""Live session lifecycle.

A ``LiveSession`` owns one recording at a time: it opens the microphone and
the streaming channel, pumps audio frames out, feeds inbound events to the
interpreter, runs the countdown, and on stop tears everything down before
finalizing the session into a record appended to history.

Every handler runs on the one event loop, so the note model is never touched
concurrently.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Callable, List, Optional

from .config import SessionConfig
from .errors import ChannelError, DeviceUnavailable, InvalidTransition, SessionBusy
from .interpreter import EventInterpreter
from .models import Note, SessionRecord, SessionState
from .notes import ActiveNotePolicy, NoteModel
from .speech import NullSpeechSink
from .timer import SessionTimer
from .tools import SYSTEM_PROMPT, build_tool_schemas, declared_names

logger = logging.getLogger(__name__)

MIC_ERROR = "No se pudo acceder al micrófono."
CONNECT_ERROR = "No se pudo conectar con el servicio de IA."
SESSION_ERROR = "Ocurrió un error con la sesión."

_TRANSITIONS = {
    SessionState.IDLE: {SessionState.STARTING},
    SessionState.STARTING: {SessionState.RUNNING, SessionState.IDLE},
    SessionState.RUNNING: {SessionState.STOPPING},
    SessionState.STOPPING: {SessionState.FINALIZING},
    SessionState.FINALIZING: {SessionState.IDLE},
}

Listener = Callable[[str, "LiveSession"], None]


class LiveSession:
    def __init__(
        self,
        *,
        capture_factory: Callable[[], object],
        channel,
        finalizer,
        history,
        speech=None,
        settings: Optional[SessionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or SessionConfig()
        self.channel = channel
        self.finalizer = finalizer
        self.history = history
        self.speech = speech or NullSpeechSink()
        self.notes = NoteModel(ActiveNotePolicy(self.settings.active_note_policy))
        self.timer = SessionTimer(
            self._on_timer_expired, clock=clock, on_tick=self._on_tick
        )

        self.state = SessionState.IDLE
        self.error: Optional[str] = None
        self.contextualize = self.settings.contextualize
        self.started_at_ms: Optional[int] = None
        self.last_record: Optional[SessionRecord] = None

        self._capture_factory = capture_factory
        self._capture = None
        self._tasks: List[asyncio.Task] = []
        self._stop_task: Optional[asyncio.Task] = None
        self._stop_requested = False
        self._done: Optional[asyncio.Event] = None
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self.state is not SessionState.IDLE

    @property
    def is_finalizing(self) -> bool:
        return self.state is SessionState.FINALIZING

    @property
    def transcript(self) -> str:
        return self.notes.transcript

    @property
    def archived_notes(self) -> List[Note]:
        return self.notes.archived

    @property
    def active_note(self) -> Optional[Note]:
        return self.notes.active

    @property
    def time_left(self) -> int:
        if self.state is SessionState.IDLE:
            return self.settings.duration_seconds
        return self.timer.remaining

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self, what: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(what, self)
            except Exception:
                logger.exception("Session listener failed on %s", what)

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {new_state.value}")
        logger.info("Session %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self._notify("state")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def set_contextualize(self, enabled: bool) -> None:
        if self.is_active:
            raise SessionBusy("Contextualize cannot change during a session.")
        self.settings.contextualize = bool(enabled)

    def archive_active(self) -> Optional[Note]:
        note = self.notes.archive_active()
        if note is not None:
            self._notify("note")
        return note

    async def start(self) -> None:
        if self.state is not SessionState.IDLE:
            raise SessionBusy(f"Cannot start while {self.state.value}.")
        if self.settings.duration_seconds <= 0:
            raise ValueError("duration_seconds must be > 0.")
        self._transition(SessionState.STARTING)
        self.error = None
        self.notes.reset()
        self._stop_task = None
        self._stop_requested = False
        self._done = asyncio.Event()
        self.contextualize = self.settings.contextualize
        self.started_at_ms = int(time.time() * 1000)

        capture = None
        try:
            capture = self._capture_factory()
            capture.start()
            tools = build_tool_schemas(self.contextualize)
            interpreter = EventInterpreter(
                self.notes,
                self.speech.speak,
                declared_tools=declared_names(tools),
                on_end=self._on_channel_end,
                on_change=self._notify,
            )
            await self.channel.open(tools, SYSTEM_PROMPT)
            self.timer.cancel()
            self.timer.start(self.settings.duration_seconds)
        except DeviceUnavailable as exc:
            logger.error("Microphone unavailable: %s", exc)
            await self._release(capture)
            self._abort_start(MIC_ERROR)
            raise
        except ChannelError as exc:
            logger.error("Channel unavailable: %s", exc)
            await self._release(capture)
            self._abort_start(CONNECT_ERROR)
            raise
        except Exception:
            logger.exception("Session start failed")
            await self._release(capture)
            self._abort_start(SESSION_ERROR)
            raise

        self._capture = capture
        self._tasks = [
            asyncio.create_task(self._pump_audio(capture), name="session-audio"),
            asyncio.create_task(self._consume_events(interpreter), name="session-events"),
            asyncio.create_task(self.timer.run(), name="session-timer"),
        ]
        self._transition(SessionState.RUNNING)
        if self._stop_requested:
            self.request_stop()

    async def _release(self, capture) -> None:
        await self._run_steps(
            [
                ("timer", self.timer.cancel),
                ("channel", self.channel.close),
                ("capture", capture.stop if capture is not None else None),
            ]
        )

    def _abort_start(self, message: str) -> None:
        self.error = message
        self._transition(SessionState.IDLE)
        self._notify("error")
        if self._done is not None:
            self._done.set()

    def request_stop(self) -> Optional[asyncio.Task]:
        """Schedule teardown and finalize; safe to call from any handler."""
        if self._stop_task is not None and not self._stop_task.done():
            return self._stop_task
        if self.state is SessionState.STARTING:
            self._stop_requested = True
            return None
        if self.state is not SessionState.RUNNING:
            return None
        self._stop_task = asyncio.get_running_loop().create_task(
            self._shutdown(), name="session-stop"
        )
        return self._stop_task

    async def stop(self) -> Optional[SessionRecord]:
        task = self.request_stop()
        if task is None:
            return None
        return await asyncio.shield(task)

    async def wait(self) -> Optional[SessionRecord]:
        """Block until the current session has been finalized."""
        if self._done is None:
            return self.last_record
        await self._done.wait()
        if self._stop_task is not None:
            return await asyncio.shield(self._stop_task)
        return None

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------
    async def _pump_audio(self, capture) -> None:
        async for frame in capture.frames():
            self.channel.send(frame)

    async def _consume_events(self, interpreter: EventInterpreter) -> None:
        async for event in self.channel.events():
            interpreter.handle(event)

    def _on_tick(self, _remaining: int) -> None:
        self._notify("tick")

    def _on_timer_expired(self) -> None:
        self.request_stop()

    def _on_channel_end(self, detail: Optional[str]) -> None:
        if self.state is not SessionState.RUNNING:
            return
        if detail is not None:
            self.error = SESSION_ERROR
            self._notify("error")
        else:
            logger.warning("Channel closed unexpectedly, stopping session")
        self.request_stop()

    def _best_effort(self, name: str, step: Callable[[], object]) -> Optional[object]:
        try:
            return step()
        except Exception:
            logger.warning("Teardown step '%s' failed", name, exc_info=True)
            return None

    async def _run_steps(self, steps) -> None:
        for name, step in steps:
            if step is None:
                continue
            result = self._best_effort(name, step)
            if inspect.isawaitable(result):
                try:
                    await result
                except Exception:
                    logger.warning("Teardown step '%s' failed", name, exc_info=True)

    async def _teardown(self) -> None:
        capture, self._capture = self._capture, None
        await self._run_steps(
            [
                ("timer", self.timer.cancel),
                ("channel", self.channel.close),
                ("capture", capture.stop if capture is not None else None),
                ("speech", self.speech.cancel),
            ]
        )
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _shutdown(self) -> SessionRecord:
        self._transition(SessionState.STOPPING)
        try:
            await self._teardown()
        finally:
            self._transition(SessionState.FINALIZING)
        try:
            snapshot = self.notes.snapshot()
            record = await self.finalizer.finalize(snapshot.transcript, snapshot.notes)
            self.history.add(record)
            self.last_record = record
            self.notes.reset()
            self._notify("record")
            return record
        finally:
            self._transition(SessionState.IDLE)
            if self._done is not None:
                self._done.set()
