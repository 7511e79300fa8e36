"""Audio helpers."""

from __future__ import annotations

from typing import List

import numpy as np

PCM16_MAX = 32767
PCM16_MIN = -32768


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Scale float samples in [-1, 1] to little-endian 16-bit PCM, clamping overflow."""
    if samples.size == 0:
        return b""
    mono = samples
    if samples.ndim > 1:
        mono = samples[:, 0]
    scaled = np.asarray(mono, dtype=np.float64) * 32768.0
    clipped = np.clip(scaled, PCM16_MIN, PCM16_MAX)
    return clipped.astype("<i2").tobytes()


def pcm16_to_float(pcm: bytes) -> np.ndarray:
    data = np.frombuffer(pcm, dtype="<i2")
    return data.astype(np.float32) / 32768.0


def resample(audio: np.ndarray, input_rate: int, target_rate: int) -> np.ndarray:
    """Linear-interpolation resampler for mono float buffers."""
    if input_rate == target_rate or audio.size == 0:
        return audio
    duration = audio.shape[0] / float(input_rate)
    new_length = max(1, int(round(duration * float(target_rate))))
    if new_length == audio.shape[0]:
        return audio
    old_indices = np.linspace(0.0, audio.shape[0] - 1, num=audio.shape[0], dtype=np.float64)
    new_indices = np.linspace(0.0, audio.shape[0] - 1, num=new_length, dtype=np.float64)
    resampled = np.interp(new_indices, old_indices, audio.astype(np.float64))
    return resampled.astype(np.float32)


def resample_pcm16(pcm: bytes, input_rate: int, target_rate: int) -> bytes:
    if input_rate == target_rate:
        return pcm
    return float_to_pcm16(resample(pcm16_to_float(pcm), input_rate, target_rate))


class FrameSlicer:
    """Accumulates variable-size float blocks and emits fixed-size PCM16 frames."""

    def __init__(self, frame_size: int) -> None:
        if frame_size <= 0:
            raise ValueError("frame_size must be > 0.")
        self.frame_size = frame_size
        self._pending = np.zeros(0, dtype=np.float32)

    def push(self, block: np.ndarray) -> List[bytes]:
        mono = block[:, 0] if block.ndim > 1 else block
        self._pending = np.concatenate([self._pending, mono.astype(np.float32)])
        frames: List[bytes] = []
        while self._pending.shape[0] >= self.frame_size:
            chunk = self._pending[: self.frame_size]
            self._pending = self._pending[self.frame_size :]
            frames.append(float_to_pcm16(chunk))
        return frames

    def reset(self) -> None:
        self._pending = np.zeros(0, dtype=np.float32)
