import asyncio
from types import SimpleNamespace

from asclepio.config import SpeechConfig
from asclepio.speech import DEFAULT_VOICE, OpenAISpeechSink, speech_request


class _FakeSpeech:
    def __init__(self):
        self.calls = []
        self.started = []

    async def create(self, **kwargs):
        self.started.append(kwargs["input"])
        await asyncio.sleep(0.05)
        self.calls.append(kwargs)
        return SimpleNamespace(content=b"\x00\x00" * 10)


def _client():
    speech = _FakeSpeech()
    return SimpleNamespace(audio=SimpleNamespace(speech=speech)), speech


def test_disabled_sink_never_synthesizes():
    client, speech = _client()
    sink = OpenAISpeechSink(client, SpeechConfig(enabled=False))
    sink.speak("Hola")
    assert speech.started == []


def test_new_utterance_cancels_previous():
    async def scenario():
        client, speech = _client()
        sink = OpenAISpeechSink(client, SpeechConfig(enabled=True, voice="coral", rate=5.0))
        sink.speak("primera")
        await asyncio.sleep(0)
        sink.speak("segunda")
        await asyncio.sleep(0.2)
        return speech

    speech = asyncio.run(scenario())
    assert speech.started == ["primera", "segunda"]
    assert [call["input"] for call in speech.calls] == ["segunda"]
    assert speech.calls[0]["voice"] == "coral"
    assert "speed" not in speech.calls[0]
    assert "2.0 veces" in speech.calls[0]["instructions"]


def test_unknown_voice_falls_back_to_default():
    client, _ = _client()
    sink = OpenAISpeechSink(client, SpeechConfig(enabled=True, voice="robot"))
    assert sink.voice() == DEFAULT_VOICE


def test_default_model_carries_rate_in_instructions():
    request = speech_request("Hola", SpeechConfig().model, "nova", 1.3)
    assert request["model"] == "gpt-4o-mini-tts"
    assert "speed" not in request
    assert "más rápido" in request["instructions"]
    assert "1.3 veces" in request["instructions"]


def test_tts1_models_use_speed_without_instructions():
    request = speech_request("Hola", "tts-1", "nova", 0.2)
    assert request["speed"] == 0.5
    assert "instructions" not in request


def test_configured_model_reaches_the_service():
    async def scenario():
        client, speech = _client()
        sink = OpenAISpeechSink(client, SpeechConfig(enabled=True, model="tts-1", rate=1.5))
        sink.speak("hola")
        await asyncio.sleep(0.2)
        return speech

    speech = asyncio.run(scenario())
    assert speech.calls[0]["model"] == "tts-1"
    assert speech.calls[0]["speed"] == 1.5
