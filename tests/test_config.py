import os
import tempfile

from asclepio.config import Config, clamp_rate, load_config, save_config


def test_save_and_load_config_roundtrip():
    cfg = Config(data_dir="C:/Asclepio")
    cfg.session.contextualize = False
    cfg.session.active_note_policy = "archive"
    cfg.speech.voice = "coral"

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "asclepio_config.yml")
        save_config(path, cfg)
        loaded = load_config(path)

    assert loaded.data_dir == "C:/Asclepio"
    assert loaded.session.contextualize is False
    assert loaded.session.active_note_policy == "archive"
    assert loaded.speech.voice == "coral"
    assert loaded.audio.sample_rate_hz == 16000
    assert loaded.audio.frame_size == 4096


def test_missing_config_uses_defaults():
    with tempfile.TemporaryDirectory() as tmp:
        loaded = load_config(os.path.join(tmp, "missing.yml"))
    assert loaded.session.duration_seconds == 600
    assert loaded.session.contextualize is True
    assert loaded.session.active_note_policy == "drop"


def test_invalid_policy_rejected():
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "bad.yml")
        with open(path, "w", encoding="utf-8") as handle:
            handle.write("session:\n  active_note_policy: keep\n")
        try:
            load_config(path)
        except ValueError as exc:
            assert "active_note_policy" in str(exc)
        else:
            raise AssertionError("expected ValueError")


def test_speech_rate_is_clamped():
    assert clamp_rate(3.0) == 2.0
    assert clamp_rate(0.1) == 0.5
    assert clamp_rate(1.3) == 1.3


def test_non_positive_duration_rejected():
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "bad.yml")
        with open(path, "w", encoding="utf-8") as handle:
            handle.write("session:\n  duration_seconds: 0\n")
        try:
            load_config(path)
        except ValueError as exc:
            assert "duration_seconds" in str(exc)
        else:
            raise AssertionError("expected ValueError")
