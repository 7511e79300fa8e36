import asyncio
import sys
import types
from types import SimpleNamespace

import numpy as np
import pytest

from asclepio.errors import DeviceUnavailable
from asclepio.recorder import AudioCapture


class _FakeStream:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.started = 0
        self.stopped = 0
        self.closed = 0

    def start(self):
        self.started += 1

    def stop(self):
        self.stopped += 1

    def close(self):
        self.closed += 1


def _install_sounddevice(monkeypatch, supported_rates=(16000,), open_error=None):
    streams = []
    module = types.ModuleType("sounddevice")
    module.default = SimpleNamespace(device=[0, 1])

    def query_devices():
        return [
            {"name": "Speakers", "index": 1, "max_input_channels": 0},
            {
                "name": "Built-in Mic",
                "index": 0,
                "max_input_channels": 1,
                "default_samplerate": 48000.0,
            },
        ]

    def check_input_settings(device=None, samplerate=None, channels=None):
        if samplerate not in supported_rates:
            raise ValueError("Invalid sample rate")

    def input_stream(**kwargs):
        if open_error is not None:
            raise open_error
        stream = _FakeStream(**kwargs)
        streams.append(stream)
        return stream

    module.query_devices = query_devices
    module.check_input_settings = check_input_settings
    module.InputStream = input_stream
    monkeypatch.setitem(sys.modules, "sounddevice", module)
    return streams


def _block(value, samples):
    return np.full((samples, 1), value, dtype=np.float32)


def test_open_failure_maps_to_device_unavailable(monkeypatch):
    _install_sounddevice(monkeypatch, open_error=RuntimeError("Error opening InputStream"))

    async def scenario():
        capture = AudioCapture(sample_rate_hz=16000, frame_size=4)
        with pytest.raises(DeviceUnavailable):
            capture.start()
        return capture

    capture = asyncio.run(scenario())
    assert not capture.running
    capture.stop()


def test_capture_cannot_be_restarted(monkeypatch):
    streams = _install_sounddevice(monkeypatch)

    async def scenario():
        capture = AudioCapture(sample_rate_hz=16000, frame_size=4)
        capture.start()
        with pytest.raises(DeviceUnavailable):
            capture.start()
        capture.stop()
        with pytest.raises(DeviceUnavailable):
            capture.start()

    asyncio.run(scenario())
    assert len(streams) == 1


def test_stream_opens_mono_at_target_rate(monkeypatch):
    streams = _install_sounddevice(monkeypatch)

    async def scenario():
        capture = AudioCapture(sample_rate_hz=16000, frame_size=4)
        capture.start()
        running = capture.running
        capture.stop()
        return capture, running

    capture, running = asyncio.run(scenario())
    assert running
    assert capture.device_rate_hz == 16000
    kwargs = streams[0].kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["channels"] == 1
    assert kwargs["device"] == 0
    assert streams[0].started == 1


def test_stop_is_idempotent(monkeypatch):
    streams = _install_sounddevice(monkeypatch)

    async def scenario():
        capture = AudioCapture(sample_rate_hz=16000, frame_size=4)
        capture.start()
        capture.stop()
        capture.stop()
        return capture

    capture = asyncio.run(scenario())
    assert not capture.running
    assert streams[0].stopped == 1
    assert streams[0].closed == 1


def test_frames_end_at_stop_and_late_blocks_are_dropped(monkeypatch):
    _install_sounddevice(monkeypatch)

    async def scenario():
        capture = AudioCapture(sample_rate_hz=16000, frame_size=4)
        capture.start()
        received = []

        async def consume():
            async for frame in capture.frames():
                received.append(frame)

        consumer = asyncio.create_task(consume())
        capture._callback(_block(0.5, 10), 10, None, None)
        await asyncio.sleep(0.05)
        before_stop = list(received)

        capture.stop()
        capture._deliver(np.full(8, 0.25, dtype=np.float32))
        capture._callback(_block(0.25, 8), 8, None, None)
        await asyncio.wait_for(consumer, timeout=1.0)
        return before_stop, received

    before_stop, received = asyncio.run(scenario())
    expected = np.full(4, 16384, dtype="<i2").tobytes()
    assert before_stop == [expected, expected]
    assert received == before_stop


def test_unsupported_rate_is_resampled(monkeypatch):
    streams = _install_sounddevice(monkeypatch, supported_rates=(48000,))

    async def scenario():
        capture = AudioCapture(sample_rate_hz=16000, frame_size=4)
        capture.start()
        received = []

        async def consume():
            async for frame in capture.frames():
                received.append(frame)

        consumer = asyncio.create_task(consume())
        capture._callback(_block(0.5, 24), 24, None, None)
        await asyncio.sleep(0.05)
        capture.stop()
        await asyncio.wait_for(consumer, timeout=1.0)
        return capture, received

    capture, received = asyncio.run(scenario())
    assert streams[0].kwargs["samplerate"] == 48000
    assert capture.device_rate_hz == 48000
    # 24 samples at 48 kHz become 8 samples at 16 kHz, two frames of 4.
    assert len(received) == 2
    assert all(len(frame) == 8 for frame in received)


def test_frames_before_start_raise():
    capture = AudioCapture()

    async def scenario():
        async for _frame in capture.frames():
            pass

    with pytest.raises(DeviceUnavailable):
        asyncio.run(scenario())
