#!/usr/bin/env python3
"""List audio output devices"""
import sounddevice as sd


def list_output_devices() -> list[dict]:
    """Return output-capable devices as dicts with index, name, channels and default rate."""
    devices = []
    for i, d in enumerate(sd.query_devices()):
        if d['max_output_channels'] <= 0:
            continue
        devices.append({
            'index': i,
            'name': d['name'],
            'channels': d['max_output_channels'],
            'default_samplerate': d['default_samplerate'],
        })
    return devices


def print_output_devices() -> None:
    print("Available Output Devices:\n")
    for d in list_output_devices():
        print(f"[{d['index']}] {d['name']}")
        print(f"    Output: {d['channels']} channels")
        print(f"    Default SR: {d['default_samplerate']} Hz")
        print()


if __name__ == "__main__":
    print_output_devices()
