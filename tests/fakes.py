import asyncio

from asclepio.channel import StreamingChannel
from asclepio.errors import ChannelError, DeviceUnavailable

_END = object()


class FakeChannel(StreamingChannel):
    """In-memory transport: ``feed`` scripts inbound events, frames are recorded."""

    def __init__(self, fail_connect=False, fail_transmit=False):
        super().__init__()
        self.fail_connect = fail_connect
        self.fail_transmit = fail_transmit
        self.transmitted = []
        self.opened_with = None
        self.disconnects = 0
        self._script = asyncio.Queue()

    def feed(self, *events):
        for event in events:
            self._script.put_nowait(event)

    def end(self):
        self._script.put_nowait(_END)

    def fail(self, message):
        self._script.put_nowait(RuntimeError(message))

    async def _connect(self, tools, system_prompt, config):
        if self.fail_connect:
            raise ChannelError("refused")
        self.opened_with = (tools, system_prompt, config)

    async def _transmit(self, frame):
        if self.fail_transmit:
            raise ConnectionError("broken pipe")
        self.transmitted.append(frame)

    async def _receive(self):
        while True:
            item = await self._script.get()
            if item is _END:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def _disconnect(self):
        self.disconnects += 1


class FakeCapture:
    def __init__(self, frames=(), fail=False, calls=None):
        self._frames = list(frames)
        self.fail = fail
        self.calls = calls if calls is not None else []
        self.started = False
        self.stopped = False
        self._stop = asyncio.Event()

    def start(self):
        if self.fail:
            raise DeviceUnavailable("permission denied")
        self.started = True
        return self

    async def frames(self):
        for frame in self._frames:
            if self.stopped:
                return
            yield frame
        await self._stop.wait()

    def stop(self):
        self.calls.append("capture")
        self.stopped = True
        self._stop.set()


class FakeFinalizer:
    def __init__(self, record_factory):
        self.calls = []
        self._factory = record_factory

    async def finalize(self, transcript, notes):
        self.calls.append((transcript, list(notes)))
        return self._factory(transcript, list(notes))


class MemoryBlobs:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value


class RecordingSpeech:
    def __init__(self):
        self.spoken = []
        self.cancelled = 0

    def speak(self, text):
        self.spoken.append(text)

    def cancel(self):
        self.cancelled += 1
