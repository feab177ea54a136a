#!/usr/bin/env python3
"""
Hemi-Sync - Binaural Beat Generator

Plays two detuned tones panned left/right, with an optional carrier tone,
background pink noise and spatial reversal automation.
"""

import argparse
import cProfile
import sys

from audio_device import DeviceUnavailable, StreamAudioDevice
from audio_session_reporter import AudioSessionReporter
from binaural_engine import BinauralEngine
from config import Waveform
from config_facade import get_config_dir, load_config, save_config
from control_loop import ControlScheduler
from logging_utils import log_event, set_log_level
from presets_wiring import get_presets_file_path, load_presets_data, merge_presets


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Hemi-Sync binaural beat generator")
    parser.add_argument("--preset", help="Preset name to apply before playing")
    parser.add_argument("--left", type=float, help="Left tone frequency in Hz (1-999)")
    parser.add_argument("--right", type=float, help="Right tone frequency in Hz (1-999)")
    parser.add_argument("--carrier", type=float, help="Carrier frequency in Hz (0 disables, max 200)")
    parser.add_argument("--waveform", choices=[w.name.lower() for w in Waveform], help="Oscillator waveform")
    parser.add_argument("--volume", type=float, help="Output volume (0-1)")
    parser.add_argument("--noise", action="store_true", default=None, help="Layer background pink noise")
    parser.add_argument("--automation-ms", type=int, help="Enable spatial reversal with this interval (ms)")
    parser.add_argument("--duration", type=float, default=60.0, help="Seconds to play (default: 60)")
    parser.add_argument("--list-presets", action="store_true", help="List presets and exit")
    parser.add_argument("--list-devices", action="store_true", help="List output devices and exit")
    parser.add_argument("--log-level", help="DEBUG/INFO/WARNING/ERROR (default: from config)")
    parser.add_argument("--save", action="store_true", help="Persist the resulting settings to config.json")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile and save stats to --profile-out",
    )
    parser.add_argument(
        "--profile-out",
        default="profile.prof",
        help="Path to save cProfile stats (default: profile.prof)",
    )
    return parser


def apply_overrides(engine: BinauralEngine, args: argparse.Namespace) -> None:
    if args.preset:
        engine.apply_preset(args.preset)
    if args.left is not None:
        engine.set_left_frequency(args.left)
    if args.right is not None:
        engine.set_right_frequency(args.right)
    if args.carrier is not None:
        engine.set_carrier_frequency(args.carrier)
    if args.waveform:
        engine.set_waveform(args.waveform)
    if args.volume is not None:
        engine.set_volume(args.volume)
    if args.noise:
        engine.set_pink_noise(True)
    if args.automation_ms:
        engine.set_automation(True, args.automation_ms)


def run_app(args: argparse.Namespace) -> int:
    config = load_config()
    set_log_level(args.log_level or config.log_level)

    config_dir = get_config_dir()
    presets = merge_presets(load_presets_data(get_presets_file_path(config_dir)))

    if args.list_presets:
        for name, p in presets.items():
            carrier = f"{p.carrier_hz:g} Hz" if p.carrier_hz > 0 else "off"
            print(f"{name}: L {p.left_hz:g} Hz / R {p.right_hz:g} Hz, carrier {carrier}, {p.waveform.name.lower()}")
        return 0

    if args.list_devices:
        try:
            # Importing sounddevice raises OSError when PortAudio is missing
            from list_audio_devices import print_output_devices
            print_output_devices()
        except OSError as e:
            print(f"Audio backend unavailable: {e}", file=sys.stderr)
            return 1
        return 0

    reporter = AudioSessionReporter(config_dir / "reports") if config.report_generation_enabled else None
    engine = BinauralEngine(config, StreamAudioDevice(config.audio), presets=presets, reporter=reporter)
    apply_overrides(engine, args)

    scheduler = ControlScheduler()
    engine.attach(scheduler)
    try:
        engine.toggle()
    except DeviceUnavailable as e:
        print(f"Could not open audio output: {e}", file=sys.stderr)
        engine.close()
        return 1

    analysis = engine.analysis()
    log_event("INFO", "Run", "Playing", preset=engine.preset_name,
              beat_hz=f"{analysis.beat_hz:.2f}", band=analysis.band.value, seconds=args.duration)
    try:
        scheduler.run_for(args.duration)
    except KeyboardInterrupt:
        log_event("INFO", "Run", "Interrupted")
    finally:
        engine.close()

    if args.save:
        save_config(config)
    return 0


def main() -> None:
    args = build_parser().parse_args()

    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        exit_code = run_app(args)
        profiler.disable()
        profiler.dump_stats(args.profile_out)
    else:
        exit_code = run_app(args)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
