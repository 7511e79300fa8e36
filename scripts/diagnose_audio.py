import argparse
import asyncio
import os
import sys
import time

import numpy as np

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from asclepio.errors import DeviceUnavailable
from asclepio.recorder import AudioCapture, find_input_device


def _describe_device(info: dict) -> None:
    print(f"Input device: {info.get('name', '')}")
    print(f"Index: {info.get('index', '')}")
    print(f"Host API: {info.get('hostapi', '')}")
    print(f"Max input channels: {info.get('max_input_channels', 0)}")
    print(f"Default sample rate: {info.get('default_samplerate', '')}")


async def _stream_levels(capture: AudioCapture, seconds: float) -> int:
    capture.start()
    print(f"Capturing at {capture.sample_rate_hz} Hz (device {capture.device_rate_hz} Hz)")
    end = time.monotonic() + seconds
    frames = 0
    try:
        async for frame in capture.frames():
            data = np.frombuffer(frame, dtype="<i2").astype("float32") / 32768.0
            rms = float(np.sqrt(np.mean(data**2)))
            peak = float(np.max(np.abs(data)))
            frames += 1
            print(f"Frame {frames:4d} | {len(data)} samples | RMS {rms:.3f} | Peak {peak:.3f}")
            if time.monotonic() >= end:
                break
    finally:
        capture.stop()
    return frames


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--device", help="Device name substring.")
    parser.add_argument("--seconds", type=float, default=6.0, help="Test duration.")
    parser.add_argument("--rate", type=int, default=16000, help="Target sample rate.")
    parser.add_argument("--frame-size", type=int, default=4096, help="Frame size.")
    args = parser.parse_args()

    try:
        _describe_device(find_input_device(args.device))
        capture = AudioCapture(
            sample_rate_hz=args.rate, frame_size=args.frame_size, device_name=args.device
        )
        frames = asyncio.run(_stream_levels(capture, args.seconds))
    except DeviceUnavailable as exc:
        print(f"Microphone unavailable: {exc}")
        return 1
    except KeyboardInterrupt:
        return 0

    if not frames:
        print("No frames captured.")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
