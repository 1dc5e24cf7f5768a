#!/usr/bin/env python3
"""
Test: Trace Recorder
Tests snapshot polling and trace file output against a mocked trainer
"""

import os
import sys
import json
import tempfile
from unittest import mock

from wtp_trainer.trace import record_trace


def fake_sleep_after(calls):
    """Sleep stand-in that interrupts the recorder after a number of polls"""
    state = {'count': 0}

    def sleep(interval):
        state['count'] += 1
        if state['count'] >= calls:
            raise KeyboardInterrupt

    return sleep


def test_record_trace_until_interrupted():
    print("=== Test: Record Trace ===")
    responses = [mock.Mock(**{'json.return_value': {'tick': tick, 'tags': {}}}) for tick in (1, 2, 3)]

    with tempfile.TemporaryDirectory() as tmp:
        output = os.path.join(tmp, 'trace.json')
        with mock.patch('wtp_trainer.trace.requests.get', side_effect=responses) as get:
            print("1. Recording three polls...")
            trace = record_trace(output, duration=60, interval=0.5,
                                 url='http://trainer:3001', sleep=fake_sleep_after(3))

        get.assert_called_with('http://trainer:3001/api/snapshot', timeout=5)
        assert get.call_count == 3
        assert [entry['tick'] for entry in trace] == [1, 2, 3]
        assert trace[0]['operation'] == 'snapshot'

        print("2. Trace written to disk...")
        with open(output) as f:
            saved = json.load(f)
        assert saved == trace
    print("Test passed!")


def test_zero_duration_writes_empty_trace():
    with tempfile.TemporaryDirectory() as tmp:
        output = os.path.join(tmp, 'empty.json')
        with mock.patch('wtp_trainer.trace.requests.get') as get:
            trace = record_trace(output, duration=0, sleep=fake_sleep_after(1))
        assert trace == []
        assert get.call_count == 0
        with open(output) as f:
            assert json.load(f) == []


if __name__ == '__main__':
    try:
        test_record_trace_until_interrupted()
        test_zero_duration_writes_empty_trace()
        sys.exit(0)
    except AssertionError as e:
        print(f"Test failed: {e}")
        sys.exit(1)
