#!/usr/bin/env python3
"""
Record Mode - Record a snapshot trace from a running trainer
"""

import os
import sys
import json
import time
import requests
from datetime import datetime, timezone

TRAINER_URL = os.getenv('TRAINER_URL', 'http://localhost:3001')
RECORD_DURATION = int(os.getenv('RECORD_DURATION', '1800'))  # 30 minutes


def record_trace(output_file, duration=RECORD_DURATION, interval=1.0, url=TRAINER_URL, sleep=time.sleep):
    """Poll /api/snapshot and save the entries as a JSON list"""
    print(f"Recording trace to {output_file}...")
    print(f"Duration: {duration} seconds")
    print("Press Ctrl+C to stop early")

    trace = []
    start_time = time.monotonic()

    try:
        while time.monotonic() - start_time < duration:
            response = requests.get(f"{url}/api/snapshot", timeout=5)
            response.raise_for_status()
            snapshot = response.json()

            trace.append({
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'operation': 'snapshot',
                'tick': snapshot.get('tick'),
                'data': snapshot,
            })

            if len(trace) % 60 == 0:
                print(f"Recorded {len(trace)} entries...")

            sleep(interval)

    except KeyboardInterrupt:
        print("\nRecording stopped by user")

    print(f"Saving {len(trace)} entries to {output_file}...")
    with open(output_file, 'w') as f:
        json.dump(trace, f, indent=2)

    print("Trace saved!")
    return trace


def main():
    output_file = sys.argv[1] if len(sys.argv) > 1 else 'trace.json'
    duration = int(sys.argv[2]) if len(sys.argv) > 2 else RECORD_DURATION
    record_trace(output_file, duration=duration)


if __name__ == '__main__':
    main()
