"""Duplex streaming channel to the remote speech service."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from .audio_utils import resample_pcm16
from .errors import ChannelAlreadyOpen, ChannelError
from .events import (
    ChannelClosed,
    ChannelEvent,
    ChannelFailed,
    FunctionInvocation,
    ToolCall,
    TranscriptDelta,
    TurnComplete,
    is_terminal,
)

logger = logging.getLogger(__name__)

_FLUSH = object()


class StreamingChannel:
    """Ordered outbound frame queue plus ordered inbound event queue.

    Subclasses provide the transport through ``_connect``, ``_transmit``,
    ``_receive`` and ``_disconnect``. Frames are transmitted by one sender task
    in the order they were passed to ``send``; inbound events are delivered by
    ``events()`` in arrival order and at most one terminal event is ever
    delivered per open/close cycle.
    """

    flush_timeout = 1.0

    def __init__(self) -> None:
        self._open = False
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._inbound: asyncio.Queue = asyncio.Queue()
        self._sender: Optional[asyncio.Task] = None
        self._reader: Optional[asyncio.Task] = None
        self._terminal_sent = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(
        self,
        tools: List[Dict[str, Any]],
        system_prompt: str,
        config: Optional[Dict[str, Any]] = None,
    ) -> "StreamingChannel":
        if self._open:
            raise ChannelAlreadyOpen("A streaming channel is already open.")
        self._outbound = asyncio.Queue()
        self._inbound = asyncio.Queue()
        self._terminal_sent = False
        await self._connect(tools, system_prompt, config or {})
        self._open = True
        self._sender = asyncio.create_task(self._send_loop(), name="channel-sender")
        self._reader = asyncio.create_task(self._read_loop(), name="channel-reader")
        logger.info("Channel opened with tools: %s", [t.get("name") for t in tools])
        return self

    def send(self, frame: bytes) -> None:
        if not self._open:
            logger.debug("Dropping frame on closed channel")
            return
        self._outbound.put_nowait(frame)

    async def events(self) -> AsyncIterator[ChannelEvent]:
        while True:
            event = await self._inbound.get()
            yield event
            if is_terminal(event):
                return

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        sender, reader = self._sender, self._reader
        self._sender = self._reader = None

        self._outbound.put_nowait(_FLUSH)
        if sender is not None:
            try:
                await asyncio.wait_for(sender, timeout=self.flush_timeout)
            except asyncio.TimeoutError:
                logger.warning("Outbound audio not flushed before close")
        try:
            await self._disconnect()
        finally:
            if reader is not None:
                reader.cancel()
                await asyncio.gather(reader, return_exceptions=True)
            self._emit_terminal(ChannelClosed())
            logger.info("Channel closed")

    # ------------------------------------------------------------------
    # Queue plumbing
    # ------------------------------------------------------------------
    async def _send_loop(self) -> None:
        while True:
            frame = await self._outbound.get()
            if frame is _FLUSH:
                return
            try:
                await self._transmit(frame)
            except Exception as exc:
                logger.error("Failed to transmit audio frame: %s", exc)
                self._emit_terminal(ChannelFailed(str(exc)))
                return

    async def _read_loop(self) -> None:
        try:
            async for event in self._receive():
                if is_terminal(event):
                    self._emit_terminal(event)
                    return
                self._emit(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Channel receive failed: %s", exc)
            self._emit_terminal(ChannelFailed(str(exc)))
            return
        self._emit_terminal(ChannelClosed())

    def _emit(self, event: ChannelEvent) -> None:
        if not self._terminal_sent:
            self._inbound.put_nowait(event)

    def _emit_terminal(self, event: ChannelEvent) -> None:
        if self._terminal_sent:
            return
        self._terminal_sent = True
        self._inbound.put_nowait(event)

    # ------------------------------------------------------------------
    # Transport hooks
    # ------------------------------------------------------------------
    async def _connect(
        self, tools: List[Dict[str, Any]], system_prompt: str, config: Dict[str, Any]
    ) -> None:
        raise NotImplementedError

    async def _transmit(self, frame: bytes) -> None:
        raise NotImplementedError

    def _receive(self) -> AsyncIterator[ChannelEvent]:
        raise NotImplementedError

    async def _disconnect(self) -> None:
        raise NotImplementedError


def _decode_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Undecodable function arguments: %r", raw)
        return {}
    return value if isinstance(value, dict) else {}


def translate_realtime_event(event: Any) -> Optional[ChannelEvent]:
    """Map one Realtime API server event onto a channel event, or None to skip it."""
    event_type = getattr(event, "type", None)
    if event_type == "conversation.item.input_audio_transcription.delta":
        delta = getattr(event, "delta", "") or ""
        return TranscriptDelta(delta) if delta else None
    if event_type == "conversation.item.input_audio_transcription.completed":
        return TurnComplete()
    if event_type == "response.done":
        response = getattr(event, "response", None)
        invocations = []
        for item in getattr(response, "output", None) or []:
            if getattr(item, "type", None) != "function_call":
                continue
            invocations.append(
                FunctionInvocation(
                    name=getattr(item, "name", "") or "",
                    args=_decode_arguments(getattr(item, "arguments", None)),
                )
            )
        return ToolCall(invocations) if invocations else None
    if event_type == "error":
        error_obj = getattr(event, "error", None)
        message = getattr(error_obj, "message", None) or str(error_obj or event)
        return ChannelFailed(message)
    return None


class RealtimeChannel(StreamingChannel):
    """Streaming channel over the OpenAI Realtime API."""

    def __init__(
        self,
        *,
        client,
        model: str,
        input_sample_rate: int = 16000,
        service_sample_rate: int = 24000,
        transcription_model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> None:
        super().__init__()
        self._client = client
        self._model = model
        self._input_sample_rate = max(1, int(input_sample_rate))
        self._service_sample_rate = max(1, int(service_sample_rate))
        self._transcription_model = transcription_model
        self._language = language
        self._manager = None
        self._connection = None

    def _session_payload(
        self, tools: List[Dict[str, Any]], system_prompt: str, config: Dict[str, Any]
    ) -> Dict[str, Any]:
        transcription: Dict[str, Any] = {}
        if self._transcription_model:
            transcription["model"] = self._transcription_model
        if self._language:
            transcription["language"] = self._language
        payload: Dict[str, Any] = {
            "type": "realtime",
            "instructions": system_prompt,
            "output_modalities": ["text"],
            "audio": {
                "input": {
                    "format": {"type": "audio/pcm", "rate": self._service_sample_rate},
                    "transcription": transcription,
                    "turn_detection": {"type": "server_vad"},
                },
            },
            "tools": tools,
            "tool_choice": "auto",
        }
        payload.update(config)
        return payload

    async def _connect(
        self, tools: List[Dict[str, Any]], system_prompt: str, config: Dict[str, Any]
    ) -> None:
        try:
            manager = self._client.realtime.connect(model=self._model)
            connection = await manager.enter()
        except Exception as exc:
            logger.error("Failed to open realtime connection: %s", exc, exc_info=True)
            raise ChannelError(str(exc)) from exc
        self._manager = manager
        self._connection = connection
        try:
            await connection.session.update(
                session=self._session_payload(tools, system_prompt, config)
            )
        except Exception as exc:
            await self._disconnect()
            raise ChannelError(str(exc)) from exc

    async def _transmit(self, frame: bytes) -> None:
        if self._connection is None:
            raise ChannelError("Realtime session is not active")
        pcm = resample_pcm16(frame, self._input_sample_rate, self._service_sample_rate)
        await self._connection.input_audio_buffer.append(
            audio=base64.b64encode(pcm).decode("ascii")
        )

    async def _receive(self) -> AsyncIterator[ChannelEvent]:
        if self._connection is None:
            return
        async for event in self._connection:
            translated = translate_realtime_event(event)
            if translated is not None:
                yield translated

    async def _disconnect(self) -> None:
        connection, self._connection = self._connection, None
        self._manager = None
        if connection is not None:
            try:
                await connection.close()
            except Exception:
                logger.debug("Failed to close realtime connection cleanly", exc_info=True)
