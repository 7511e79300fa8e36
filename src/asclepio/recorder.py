"""Microphone capture for live sessions."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Dict, List, Optional

from .audio_utils import FrameSlicer, resample
from .errors import DeviceUnavailable

logger = logging.getLogger(__name__)

_STOP = object()


def list_input_devices() -> List[Dict[str, Any]]:
    try:
        import sounddevice as sd
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise DeviceUnavailable("sounddevice is required for device detection.") from exc

    devices = sd.query_devices()
    return [dict(d) for d in devices if d.get("max_input_channels", 0) > 0]


def select_preferred_device(
    candidates: List[Dict[str, Any]],
    prefer_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not candidates:
        raise DeviceUnavailable("No input devices found.")
    if prefer_name:
        preferred = [
            d for d in candidates if prefer_name.lower() in d.get("name", "").lower()
        ]
        if preferred:
            return preferred[0]
        logger.warning("Input device '%s' not found, using default", prefer_name)

    for device in candidates:
        if device.get("is_default"):
            return device
    return candidates[0]


def find_input_device(prefer_name: Optional[str] = None) -> Dict[str, Any]:
    candidates = list_input_devices()
    try:
        import sounddevice as sd

        default_index = sd.default.device[0]
    except Exception:  # pragma: no cover - environment-dependent
        default_index = None
    for device in candidates:
        device["is_default"] = device.get("index") == default_index
    return select_preferred_device(candidates, prefer_name=prefer_name)


class AudioCapture:
    """Opens the microphone and yields fixed-size mono PCM16 frames.

    The device is opened at the target rate when it supports it, otherwise at
    its default rate with blocks resampled before framing. Blocks arrive on the
    PortAudio thread and are handed to the event loop; ``frames()`` is a single
    pass iterator that ends once ``stop()`` has been called.
    """

    def __init__(
        self,
        sample_rate_hz: int = 16000,
        frame_size: int = 4096,
        device_name: Optional[str] = None,
    ) -> None:
        self.sample_rate_hz = sample_rate_hz
        self.frame_size = frame_size
        self.device_name = device_name
        self.device_rate_hz = sample_rate_hz

        self._stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._slicer = FrameSlicer(frame_size)
        self._stopped = threading.Event()
        self._started = False

    @property
    def running(self) -> bool:
        return self._started and not self._stopped.is_set()

    def start(self) -> "AudioCapture":
        if self._started:
            raise DeviceUnavailable("Audio capture streams cannot be restarted.")
        try:
            import sounddevice as sd
        except Exception as exc:  # pragma: no cover - environment-dependent
            raise DeviceUnavailable("sounddevice is required for recording.") from exc

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._started = True
        try:
            device = find_input_device(self.device_name)
            stream = self._open_stream(sd, device)
            stream.start()
        except DeviceUnavailable:
            self._stopped.set()
            raise
        except Exception as exc:
            self._stopped.set()
            logger.error("Could not open microphone: %s", exc)
            raise DeviceUnavailable(str(exc)) from exc
        self._stream = stream
        logger.info(
            "Capture started on '%s' at %s Hz", device.get("name"), self.device_rate_hz
        )
        return self

    def _open_stream(self, sd, device: Dict[str, Any]):
        kwargs = dict(
            channels=1,
            dtype="float32",
            device=device.get("index"),
            callback=self._callback,
        )
        try:
            sd.check_input_settings(
                device=device.get("index"), samplerate=self.sample_rate_hz, channels=1
            )
            self.device_rate_hz = self.sample_rate_hz
        except Exception:
            self.device_rate_hz = int(device.get("default_samplerate") or self.sample_rate_hz)
            logger.info(
                "Device rejects %s Hz, resampling from %s Hz",
                self.sample_rate_hz,
                self.device_rate_hz,
            )
        return sd.InputStream(samplerate=self.device_rate_hz, **kwargs)

    def _callback(self, indata, _frames, _time, status) -> None:
        if status:
            logger.debug("Capture status: %s", status)
        if self._stopped.is_set() or self._loop is None:
            return
        block = indata[:, 0].copy()
        try:
            self._loop.call_soon_threadsafe(self._deliver, block)
        except RuntimeError:
            # loop already closed
            pass

    def _deliver(self, block) -> None:
        if self._stopped.is_set() or self._queue is None:
            return
        if self.device_rate_hz != self.sample_rate_hz:
            block = resample(block, self.device_rate_hz, self.sample_rate_hz)
        for frame in self._slicer.push(block):
            self._queue.put_nowait(frame)

    async def frames(self) -> AsyncIterator[bytes]:
        if self._queue is None:
            raise DeviceUnavailable("Audio capture has not been started.")
        while not self._stopped.is_set():
            item = await self._queue.get()
            if item is _STOP or self._stopped.is_set():
                break
            yield item

    def stop(self) -> None:
        if self._stopped.is_set() and self._stream is None:
            return
        self._stopped.set()
        stream, self._stream = self._stream, None
        if self._queue is not None:
            self._queue.put_nowait(_STOP)
        self._slicer.reset()
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()
            logger.info("Capture stopped")
