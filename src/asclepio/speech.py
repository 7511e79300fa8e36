"""Spoken feedback for notes and answers."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import numpy as np

from .config import SpeechConfig, clamp_rate

logger = logging.getLogger(__name__)

AVAILABLE_VOICES = (
    "alloy",
    "ash",
    "ballad",
    "coral",
    "echo",
    "fable",
    "nova",
    "onyx",
    "sage",
    "shimmer",
)
DEFAULT_VOICE = "nova"
PLAYBACK_RATE_HZ = 24000
BASE_INSTRUCTIONS = "Habla en español de España."

# tts-1 models take `speed`; the other models take pacing in `instructions`.
SPEED_MODELS = ("tts-1", "tts-1-hd")


def pace_instructions(rate: float) -> str:
    rate = clamp_rate(rate)
    if abs(rate - 1.0) < 0.05:
        return f"{BASE_INSTRUCTIONS} Habla a un ritmo normal."
    pace = "más rápido" if rate > 1.0 else "más lento"
    return f"{BASE_INSTRUCTIONS} Habla {pace} de lo normal, a {rate:.1f} veces la velocidad habitual."


def speech_request(text: str, model: str, voice: str, rate: float) -> dict:
    request = {
        "model": model,
        "voice": voice,
        "input": text,
        "response_format": "pcm",
    }
    if model in SPEED_MODELS:
        request["speed"] = clamp_rate(rate)
    else:
        request["instructions"] = pace_instructions(rate)
    return request


class NullSpeechSink:
    def speak(self, text: str) -> None:
        pass

    def cancel(self) -> None:
        pass


class OpenAISpeechSink:
    """Fire-and-forget text-to-speech with at most one audible utterance.

    Each ``speak`` cancels the utterance in flight before synthesizing the new
    one. Settings are read on every call so voice output can be toggled while a
    session runs.
    """

    def __init__(self, client, settings: SpeechConfig) -> None:
        self._client = client
        self.settings = settings
        self._task: Optional[asyncio.Task] = None

    def voice(self) -> str:
        voice = self.settings.voice
        if voice and voice in AVAILABLE_VOICES:
            return voice
        return DEFAULT_VOICE

    def speak(self, text: str) -> None:
        if not self.settings.enabled or not text.strip():
            return
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._say(text))

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        try:
            import sounddevice as sd

            sd.stop()
        except Exception:  # pragma: no cover - environment-dependent
            logger.debug("Playback stop failed", exc_info=True)

    async def _say(self, text: str) -> None:
        try:
            response = await self._client.audio.speech.create(
                **speech_request(
                    text, self.settings.model, self.voice(), self.settings.rate
                )
            )
            audio = np.frombuffer(response.content, dtype="<i2")
            import sounddevice as sd

            sd.play(audio, PLAYBACK_RATE_HZ)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Speech synthesis failed", exc_info=True)
