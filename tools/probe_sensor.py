"""Probe the thermometer: send one M byte and show exactly what comes back."""

import argparse
import sys
import time

from sensor_relay import protocol
from sensor_relay.codec import LineCodec
from sensor_relay.errors import InvalidResponse, SerialIOError
from sensor_relay.models import SensorCommand
from sensor_relay.transport import Transport


def probe(port: str, timeout_s: float) -> int:
    """Run one Measure exchange against ``port`` and print each step."""

    print(f"\n=== Opening {port} at {protocol.BAUD_RATE} baud ===")
    try:
        transport = Transport.open(port, timeout_s=timeout_s)
    except SerialIOError as e:
        print(f"*** {e} ***")
        return 1

    codec = LineCodec()
    with transport:
        frame = bytearray()
        codec.encode(SensorCommand.MEASURE, frame)

        print(f"\n=== Sending {bytes(frame)!r} ===")
        start = time.monotonic()
        transport.write_bytes(bytes(frame))

        buffer = bytearray()
        while True:
            chunk = transport.read_available()
            if not chunk:
                print(f"\n*** No complete line after {timeout_s}s, buffered: {bytes(buffer)!r} ***")
                print("\nPossible reasons:")
                print("1. Wrong device path (check dmesg for the ttyACM/ttyUSB name)")
                print("2. Sensor still booting after the port opened (try again)")
                print("3. Firmware expects a different baud rate")
                return 1

            elapsed = time.monotonic() - start
            print(f"RX +{elapsed:.3f}s: {chunk!r}")
            buffer.extend(chunk)

            try:
                reading = codec.decode(buffer)
            except InvalidResponse as e:
                print(f"\n*** Malformed line: {e} ***")
                return 1

            if reading is not None:
                print(f"\nHumidity:    {reading.humidity} %")
                print(f"Temperature: {reading.temperature} C")
                return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("port", nargs="?", default=protocol.DEFAULT_DEVICE)
    parser.add_argument("--timeout", type=float, default=protocol.READ_TIMEOUT_S)
    args = parser.parse_args()
    sys.exit(probe(args.port, args.timeout))
