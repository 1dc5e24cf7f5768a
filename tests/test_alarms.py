#!/usr/bin/env python3
"""
Test: Alarm Lifecycle
Tests raise, hysteresis clear, re-raise, acknowledgement, delays and thresholds
"""

import sys

from wtp_trainer.alarm_engine import AlarmEngine
from wtp_trainer.tags import TagCatalog
from wtp_trainer.errors import UnknownEntity, OutOfRange


def make_engine():
    return AlarmEngine(TagCatalog())


def test_raise_hysteresis_and_reraise():
    """One record per crossing; clears only past the 5% band; re-crossing is a new record"""
    print("=== Test: Alarm Hysteresis ===")
    engine = make_engine()

    print("1. Raw turbidity crosses H=200...")
    raised, cleared = engine.evaluate({'INT-AIT-001': 210.0}, 't1', 1.0)
    assert len(raised) == 1, f"Expected 1 alarm, got {raised}"
    first = raised[0]
    assert first['level'] == 'H' and first['priority'] == 'HIGH' and first['state'] == 'active'
    assert first['value'] == 210.0 and first['threshold'] == 200.0

    print("2. Staying above does not duplicate...")
    raised, _ = engine.evaluate({'INT-AIT-001': 220.0}, 't2', 2.0)
    assert raised == []
    assert len(engine.active_alarms()) == 1

    print("3. Dropping inside the band keeps the alarm...")
    _, cleared = engine.evaluate({'INT-AIT-001': 195.0}, 't3', 3.0)
    assert cleared == [], "195 is inside the 10 NTU band"

    print("4. Dropping past the band clears it...")
    _, cleared = engine.evaluate({'INT-AIT-001': 185.0}, 't4', 4.0)
    assert len(cleared) == 1 and cleared[0]['id'] == first['id']
    assert cleared[0]['state'] == 'cleared' and cleared[0]['cleared_at'] == 't4'
    assert engine.active_alarms() == []

    print("5. Re-crossing raises a distinct record...")
    raised, _ = engine.evaluate({'INT-AIT-001': 205.0}, 't5', 5.0)
    assert len(raised) == 1 and raised[0]['id'] != first['id']
    assert len(engine.history()) == 2
    print("Test passed!")


def test_low_levels_are_independent():
    engine = make_engine()
    raised, _ = engine.evaluate({'DIS-AIT-001': 0.25}, 't1', 1.0)
    levels = sorted(r['level'] for r in raised)
    assert levels == ['L', 'LL'], f"Expected L and LL, got {levels}"
    priorities = {r['level']: r['priority'] for r in raised}
    assert priorities == {'L': 'MEDIUM', 'LL': 'CRITICAL'}
    assert engine.active_alarms()[0]['priority'] == 'CRITICAL', "Highest priority first"

    # LL clears above 0.315, L stays until above 0.525
    _, cleared = engine.evaluate({'DIS-AIT-001': 0.4}, 't2', 2.0)
    assert [c['level'] for c in cleared] == ['LL']
    assert [a['level'] for a in engine.active_alarms()] == ['L']


def test_acknowledge():
    print("=== Test: Alarm Acknowledgement ===")
    engine = make_engine()
    raised, _ = engine.evaluate({'FLT-PDT-001': 7.5}, 't1', 1.0)
    alarm_id = raised[0]['id']

    print("1. Acknowledging...")
    record = engine.acknowledge(alarm_id, 't2')
    assert record['state'] == 'acknowledged' and record['acknowledged_at'] == 't2'

    print("2. Acknowledging again is idempotent...")
    record = engine.acknowledge(alarm_id, 't3')
    assert record['acknowledged_at'] == 't2'

    print("3. Condition persists; acknowledged alarm still clears on recovery...")
    engine.evaluate({'FLT-PDT-001': 7.5}, 't4', 4.0)
    assert engine.active_alarms()[0]['state'] == 'acknowledged'
    _, cleared = engine.evaluate({'FLT-PDT-001': 5.0}, 't5', 5.0)
    assert len(cleared) == 1

    print("4. Cleared and unknown ids are rejected...")
    for bad in (alarm_id, 'nonexistent-alarm-id-12345'):
        try:
            engine.acknowledge(bad, 't6')
            assert False, f"Expected UnknownEntity for {bad}"
        except UnknownEntity:
            pass
    print("Test passed!")


def test_raise_delay_uses_simulated_time():
    engine = make_engine()
    raised, _ = engine.evaluate({'INT-PDT-001': 5.5}, 't0', 0.0)
    assert raised == [], "Screen dP alarm is delayed 5 s"
    raised, _ = engine.evaluate({'INT-PDT-001': 5.5}, 't1', 3.0)
    assert raised == []
    raised, _ = engine.evaluate({'INT-PDT-001': 5.5}, 't2', 5.0)
    assert len(raised) == 1

    # a dip below the threshold restarts the delay
    engine.reset()
    engine.evaluate({'INT-PDT-001': 5.5}, 't0', 0.0)
    engine.evaluate({'INT-PDT-001': 4.0}, 't1', 3.0)
    raised, _ = engine.evaluate({'INT-PDT-001': 5.5}, 't2', 6.0)
    assert raised == []


def test_set_thresholds():
    engine = make_engine()
    engine.set_thresholds('INT-AIT-001', {'H': 50, 'HH': 100})
    raised, _ = engine.evaluate({'INT-AIT-001': 60.0}, 't1', 1.0)
    assert [r['level'] for r in raised] == ['H']

    for tag, levels, error in (
        ('NOPE-001', {'H': 1}, UnknownEntity),
        ('INT-AIT-001', {'XX': 1}, OutOfRange),
        ('INT-AIT-001', {'H': 'high'}, OutOfRange),
        ('INT-AIT-001', {'H': 100, 'HH': 50}, OutOfRange),
    ):
        try:
            engine.set_thresholds(tag, levels)
            assert False, f"Expected {error.__name__} for {tag} {levels}"
        except error:
            pass
    assert engine.get_thresholds()['INT-AIT-001'] == {'H': 50.0, 'HH': 100.0}


def test_history_is_bounded():
    engine = AlarmEngine(TagCatalog(), history_size=3)
    for i in range(5):
        engine.evaluate({'INT-AIT-001': 250.0}, f"r{i}", float(i))
        engine.evaluate({'INT-AIT-001': 100.0}, f"c{i}", float(i))
    history = engine.history()
    assert len(history) == 3
    assert history[0]['raised_at'] == 'r4', "Newest first"


if __name__ == '__main__':
    try:
        test_raise_hysteresis_and_reraise()
        test_low_levels_are_independent()
        test_acknowledge()
        test_raise_delay_uses_simulated_time()
        test_set_thresholds()
        test_history_is_bounded()
        sys.exit(0)
    except AssertionError as e:
        print(f"Test failed: {e}")
        sys.exit(1)
