"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
import threading
from datetime import datetime

from .channel import RealtimeChannel
from .config import DEFAULT_CONFIG_PATH, clamp_rate, load_config, save_config
from .errors import ChannelError, DeviceUnavailable
from .finalizer import SessionFinalizer
from .history import FileBlobStore, HistoryStore
from .logging_utils import setup_logging
from .models import SessionState
from .orchestrator import LiveSession
from .recorder import AudioCapture, list_input_devices
from .renderer import VIEWS, render_history, render_session, render_view
from .speech import AVAILABLE_VOICES, OpenAISpeechSink
from .storage import build_export_basename, ensure_structure
from .timer import format_time


def _positive_int(value: str) -> int:
    seconds = int(value)
    if seconds <= 0:
        raise argparse.ArgumentTypeError("must be a positive number of seconds")
    return seconds


def _open_history(paths: dict) -> HistoryStore:
    history = HistoryStore(FileBlobStore(paths["history"]))
    history.load()
    return history


class ConsoleView:
    """Prints live session changes to stdout."""

    def __init__(self) -> None:
        self._printed = 0

    def __call__(self, what: str, session: LiveSession) -> None:
        if what == "transcript":
            text = session.transcript
            print(text[self._printed :], end="", flush=True)
            self._printed = len(text)
        elif what == "note" and session.archived_notes:
            note = session.archived_notes[-1]
            print(f"\n[Nota] {note.heading}")
        elif what == "active" and session.active_note is not None:
            note = session.active_note
            print(f"\n[{note.type.value}] {note.heading}\n  {note.content}")
            print("  (escribe 'a' para archivar)")
        elif what == "error" and session.error:
            print(f"\n{session.error}")
        elif what == "tick" and session.time_left % 60 == 0:
            print(f"\n[{format_time(session.time_left)}]")
        elif what == "state":
            if session.state is SessionState.RUNNING:
                self._printed = 0
                print("Sesión en Progreso. 'a' archiva la respuesta, 'q' detiene.")
            elif session.state is SessionState.FINALIZING:
                print("\nGenerando informe de la sesión, por favor espera...")


async def _run_session(session: LiveSession) -> int:
    loop = asyncio.get_running_loop()
    commands: asyncio.Queue = asyncio.Queue()

    def _read_stdin() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(commands.put_nowait, line.strip().lower())

    threading.Thread(target=_read_stdin, name="stdin-commands", daemon=True).start()
    try:
        loop.add_signal_handler(signal.SIGINT, session.request_stop)
    except (NotImplementedError, RuntimeError):  # pragma: no cover - Windows
        pass

    session.add_listener(ConsoleView())
    try:
        await session.start()
    except (DeviceUnavailable, ChannelError):
        return 1

    waiter = asyncio.create_task(session.wait())
    while not waiter.done():
        getter = asyncio.create_task(commands.get())
        done, _pending = await asyncio.wait(
            {waiter, getter}, return_when=asyncio.FIRST_COMPLETED
        )
        if getter not in done:
            getter.cancel()
            continue
        command = getter.result()
        if command == "a":
            session.archive_active()
        elif command in ("q", "s", "stop"):
            session.request_stop()

    record = waiter.result()
    if record is None:
        return 1
    print(f"\nSesión guardada: {record.title} ({record.id[:8]})")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(prog="asclepio")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Config.")
    parser.add_argument("--data-dir", help="History and export directory.")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="command")

    run_cmd = sub.add_parser("run")
    run_cmd.add_argument("--duration", type=_positive_int, help="Seconds before auto-stop.")
    run_cmd.add_argument("--device", help="Preferred device name substring.")
    run_cmd.add_argument(
        "--no-context", action="store_true", help="Disable live contextualization."
    )
    run_cmd.add_argument("--voice", action="store_true", help="Speak notes aloud.")
    run_cmd.add_argument("--voice-name", choices=AVAILABLE_VOICES, help="Voice.")
    run_cmd.add_argument("--rate", type=float, help="Speech rate (0.5-2.0).")
    run_cmd.add_argument(
        "--policy",
        choices=["drop", "archive"],
        help="What happens to an unarchived card when a new one arrives.",
    )

    sub.add_parser("history")
    show_cmd = sub.add_parser("show")
    show_cmd.add_argument("session_id", help="Session id or prefix.")
    show_cmd.add_argument("--view", choices=list(VIEWS), help="Single view.")
    export_cmd = sub.add_parser("export")
    export_cmd.add_argument("session_id", help="Session id or prefix.")
    export_cmd.add_argument("--out", help="Output Markdown path.")
    remove_cmd = sub.add_parser("remove")
    remove_cmd.add_argument("session_id", help="Session id or prefix.")
    devices_cmd = sub.add_parser("devices")
    devices_cmd.add_argument("--match", help="Filter device names by substring.")
    sub.add_parser("config")

    args = parser.parse_args()
    cfg = load_config(args.config)
    paths = ensure_structure(args.data_dir or cfg.data_dir)
    setup_logging(
        cfg.log_dir or paths["logs"],
        level=logging.DEBUG if args.verbose else logging.INFO,
        console=True,
    )

    if args.command == "config":
        save_config(args.config, cfg)
        print(f"Wrote {args.config}")
        return 0

    if args.command == "devices":
        devices = list_input_devices()
        if args.match:
            devices = [
                d for d in devices if args.match.lower() in d.get("name", "").lower()
            ]
        for device in devices:
            name = device.get("name", "Unknown")
            index = device.get("index", "?")
            rate = device.get("default_samplerate", "?")
            print(f"[{index}] {name} (inputs: {device.get('max_input_channels', 0)}, rate={rate})")
        return 0

    if args.command == "history":
        print(render_history(_open_history(paths).records))
        return 0

    if args.command in ("show", "export", "remove"):
        history = _open_history(paths)
        record = history.get(args.session_id)
        if record is None:
            print(f"Session not found or ambiguous: {args.session_id}")
            return 1
        if args.command == "show":
            if args.view:
                print(render_view(record, args.view))
            else:
                print(render_session(record))
        elif args.command == "export":
            out = args.out or os.path.join(
                paths["exports"],
                f"{build_export_basename(record.title, datetime.fromtimestamp(record.date / 1000))}.md",
            )
            with open(out, "w", encoding="utf-8") as handle:
                handle.write(render_session(record))
            print(f"Wrote {out}")
        else:
            history.remove(record.id)
            print(f"Removed {record.id}")
        return 0

    if args.command == "run":
        if args.duration:
            cfg.session.duration_seconds = args.duration
        if args.device:
            cfg.audio.device_name = args.device
        if args.no_context:
            cfg.session.contextualize = False
        if args.voice:
            cfg.speech.enabled = True
        if args.voice_name:
            cfg.speech.voice = args.voice_name
        if args.rate:
            cfg.speech.rate = clamp_rate(args.rate)
        if args.policy:
            cfg.session.active_note_policy = args.policy

        api_key = cfg.remote.resolved_api_key()
        if not api_key:
            print("Set OPENAI_API_KEY or remote.api_key in the config file.")
            return 1

        from openai import AsyncOpenAI

        client = AsyncOpenAI(api_key=api_key, base_url=cfg.remote.base_url or None)
        channel = RealtimeChannel(
            client=client,
            model=cfg.remote.realtime_model,
            input_sample_rate=cfg.audio.sample_rate_hz,
            service_sample_rate=cfg.remote.service_sample_rate_hz,
            transcription_model=cfg.remote.transcription_model,
            language=cfg.remote.language,
        )
        session = LiveSession(
            capture_factory=lambda: AudioCapture(
                sample_rate_hz=cfg.audio.sample_rate_hz,
                frame_size=cfg.audio.frame_size,
                device_name=cfg.audio.device_name,
            ),
            channel=channel,
            finalizer=SessionFinalizer(client, model=cfg.remote.summary_model),
            history=_open_history(paths),
            speech=OpenAISpeechSink(client, cfg.speech),
            settings=cfg.session,
        )
        return asyncio.run(_run_session(session))

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
