#!/usr/bin/env python3
"""
Test: Tick Scheduler
Tests gapless tick numbering, speed changes and the background loop
"""

import sys
import time
import threading

from wtp_trainer.scheduler import TickScheduler
from wtp_trainer.session import SimulationSession
from wtp_trainer.errors import OutOfRange


def test_ticks_monotonic_across_speed_changes():
    """Tick numbers stay gapless; speed applies from the next tick without resetting time"""
    print("=== Test: Speed Changes ===")
    sim = SimulationSession()

    print("1. Three ticks at 1x...")
    snapshots = [sim.tick() for _ in range(3)]

    print("2. Switching to 5x, then 10x...")
    sim.set_speed(5)
    snapshots += [sim.tick() for _ in range(3)]
    sim.set_speed(10)
    snapshots += [sim.tick() for _ in range(2)]

    ticks = [s.tick for s in snapshots]
    assert ticks == list(range(1, 9)), f"Ticks not gapless: {ticks}"

    deltas = [round(b.elapsed - a.elapsed, 6) for a, b in zip(snapshots, snapshots[1:])]
    assert deltas == [0.5, 0.5, 2.5, 2.5, 2.5, 5.0, 5.0], f"Unexpected sim-time deltas: {deltas}"
    assert [s.speed_multiplier for s in snapshots] == [1, 1, 1, 5, 5, 5, 10, 10]

    print("3. Speed change is logged...")
    descriptions = [e.description for e in sim.history.events()]
    assert descriptions == ['Simulation speed: 5× → 10×', 'Simulation speed: 1× → 5×'], descriptions
    print("Test passed!")


def test_invalid_speed_rejected():
    sim = SimulationSession()
    for bad in (0, 2, 3, 100, True, '5'):
        try:
            sim.set_speed(bad)
            assert False, f"Expected OutOfRange for {bad!r}"
        except OutOfRange:
            pass
    assert sim.tick().speed_multiplier == 1
    assert len(sim.history) == 0


def test_failed_tick_keeps_clock():
    """A step that raises leaves the tick number and sim time for the retry"""
    print("=== Test: Failed Tick Rollback ===")
    failures = [RuntimeError("boom")]
    seen = []

    def step(tick, elapsed, dt, speed):
        seen.append((tick, elapsed))
        if failures:
            raise failures.pop()
        return tick

    scheduler = TickScheduler(step, threading.RLock(), period=0.5)

    print("1. First tick fails...")
    try:
        scheduler.tick()
        assert False, "Expected RuntimeError"
    except RuntimeError:
        pass
    assert scheduler.tick_number == 0 and scheduler.elapsed == 0.0

    print("2. Retry reuses tick 1...")
    assert scheduler.tick() == 1
    assert scheduler.tick() == 2
    assert seen == [(1, 0.5), (1, 0.5), (2, 1.0)], seen
    print("Test passed!")


def test_background_loop_survives_tick_errors():
    print("=== Test: Background Loop ===")
    calls = []
    published = []
    failures = [RuntimeError("boom")]

    def flaky_step(tick, elapsed, dt, speed):
        calls.append(tick)
        if tick == 2 and failures:
            raise failures.pop()
        published.append(tick)
        return tick

    scheduler = TickScheduler(flaky_step, threading.RLock(), period=0.01)
    print("1. Running loop for a short while...")
    scheduler.start()
    deadline = time.monotonic() + 2.0
    while len(published) < 5 and time.monotonic() < deadline:
        time.sleep(0.01)
    scheduler.stop()

    assert len(published) >= 5, f"Loop stalled after error: {calls}"
    assert calls[:3] == [1, 2, 2], calls
    assert published[:5] == [1, 2, 3, 4, 5], f"Published ticks not gapless: {published}"
    assert not scheduler.running
    print("Test passed!")


if __name__ == '__main__':
    try:
        test_ticks_monotonic_across_speed_changes()
        test_invalid_speed_rejected()
        test_failed_tick_keeps_clock()
        test_background_loop_survives_tick_errors()
        sys.exit(0)
    except AssertionError as e:
        print(f"Test failed: {e}")
        sys.exit(1)
