"""Configuration handling."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional
import yaml

DEFAULT_CONFIG_PATH = "asclepio_config.yml"

ACTIVE_NOTE_POLICIES = ("drop", "archive")

MIN_SPEECH_RATE = 0.5
MAX_SPEECH_RATE = 2.0


@dataclass
class AudioConfig:
    sample_rate_hz: int = 16000
    frame_size: int = 4096
    device_name: Optional[str] = None


@dataclass
class SessionConfig:
    duration_seconds: int = 600
    contextualize: bool = True
    active_note_policy: str = "drop"


@dataclass
class SpeechConfig:
    enabled: bool = False
    voice: Optional[str] = None
    rate: float = 1.3
    model: str = "gpt-4o-mini-tts"


@dataclass
class RemoteConfig:
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    realtime_model: str = "gpt-realtime"
    transcription_model: str = "gpt-4o-mini-transcribe"
    summary_model: str = "gpt-4o-mini"
    language: str = "es"
    service_sample_rate_hz: int = 24000

    def resolved_api_key(self) -> Optional[str]:
        return self.api_key or os.getenv("OPENAI_API_KEY")


@dataclass
class Config:
    data_dir: str = ""
    log_dir: str = ""
    audio: AudioConfig = field(default_factory=AudioConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)


def clamp_rate(rate: float) -> float:
    return min(max(float(rate), MIN_SPEECH_RATE), MAX_SPEECH_RATE)


def _policy(value) -> str:
    value = str(value or "drop").strip().lower()
    if value not in ACTIVE_NOTE_POLICIES:
        raise ValueError(
            f"active_note_policy must be one of {', '.join(ACTIVE_NOTE_POLICIES)}"
        )
    return value


def _duration(value) -> int:
    seconds = int(value)
    if seconds <= 0:
        raise ValueError("duration_seconds must be > 0")
    return seconds


def default_config() -> Config:
    return Config()


def load_config(path: str) -> Config:
    if not os.path.exists(path):
        return default_config()
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    audio = AudioConfig(**data.get("audio", {}))
    session_data = dict(data.get("session", {}))
    session_data["active_note_policy"] = _policy(
        session_data.get("active_note_policy")
    )
    if "duration_seconds" in session_data:
        session_data["duration_seconds"] = _duration(session_data["duration_seconds"])
    session = SessionConfig(**session_data)
    speech = SpeechConfig(**data.get("speech", {}))
    speech.rate = clamp_rate(speech.rate)
    remote = RemoteConfig(**data.get("remote", {}))

    return Config(
        data_dir=data.get("data_dir", ""),
        log_dir=data.get("log_dir", ""),
        audio=audio,
        session=session,
        speech=speech,
        remote=remote,
    )


def save_config(path: str, config: Config) -> None:
    data = {
        "data_dir": config.data_dir,
        "log_dir": config.log_dir,
        "audio": {
            "sample_rate_hz": config.audio.sample_rate_hz,
            "frame_size": config.audio.frame_size,
            "device_name": config.audio.device_name,
        },
        "session": {
            "duration_seconds": config.session.duration_seconds,
            "contextualize": config.session.contextualize,
            "active_note_policy": config.session.active_note_policy,
        },
        "speech": {
            "enabled": config.speech.enabled,
            "voice": config.speech.voice,
            "rate": config.speech.rate,
            "model": config.speech.model,
        },
        "remote": {
            "api_key": config.remote.api_key,
            "base_url": config.remote.base_url,
            "realtime_model": config.remote.realtime_model,
            "transcription_model": config.remote.transcription_model,
            "summary_model": config.remote.summary_model,
            "language": config.remote.language,
            "service_sample_rate_hz": config.remote.service_sample_rate_hz,
        },
    }
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False, allow_unicode=True)
