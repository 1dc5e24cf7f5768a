#!/usr/bin/env python3
"""
Test: Equipment Commands
Tests command validation, history logging and state round trips
"""

import sys

from wtp_trainer.session import SimulationSession
from wtp_trainer.errors import InvalidTransition, OutOfRange, UnknownEntity, ConflictingActivation


def test_pump_stop_start_round_trip():
    """Stop then start a pump; each command logs one complementary event"""
    print("=== Test: Pump Stop/Start Round Trip ===")
    sim = SimulationSession()

    print("1. Stopping Intake Pump 1...")
    result = sim.issue_command('intakePump1', 'stop')
    assert result.before == 'running' and result.after == 'stopped', f"Unexpected result: {result}"
    events = sim.history.events()
    assert len(events) == 1, f"Expected 1 history event, got {len(events)}"
    assert events[0].description == 'Intake Pump 1 (P-101): running → stopped', events[0].description
    assert events[0].category == 'pump'

    print("2. Starting Intake Pump 1...")
    result = sim.issue_command('intakePump1', 'start')
    assert result.after == 'running'
    events = sim.history.events()
    assert len(events) == 2, f"Expected 2 history events, got {len(events)}"
    assert events[0].description == 'Intake Pump 1 (P-101): stopped → running', "Newest event first"
    assert events[1].description == 'Intake Pump 1 (P-101): running → stopped'

    print("3. Verifying next snapshot reflects the command...")
    snapshot = sim.tick()
    assert snapshot.equipment['intakePump1']['state'] == 'running'
    print("Test passed!")


def test_repeat_command_is_noop_success():
    print("=== Test: Repeat Command ===")
    sim = SimulationSession()
    result = sim.issue_command('intakeValve', 'open')
    assert result.before == 'open' and result.after == 'open'
    assert sim.history.events()[0].description == 'Intake Valve (XV-101): open → open'
    print("Test passed!")


def test_set_speed_requires_running_pump():
    print("=== Test: setSpeed on Stopped Pump ===")
    sim = SimulationSession()

    print("1. setSpeed on stopped Intake Pump 2 is rejected...")
    try:
        sim.issue_command('intakePump2', 'setSpeed', {'value': 90})
        assert False, "Expected InvalidTransition"
    except InvalidTransition:
        pass
    assert len(sim.history) == 0, "Rejected command must not log"
    assert sim.equipment.get('intakePump2').speed == 75.0

    print("2. setSpeed on running pump logs speed change...")
    sim.issue_command('intakePump1', 'setSpeed', {'value': 90})
    assert sim.history.events()[0].description == 'Intake Pump 1 (P-101) speed: 75% → 90%'

    print("3. Speed is retained across stop/start...")
    sim.issue_command('intakePump1', 'stop')
    sim.issue_command('intakePump1', 'start')
    assert sim.equipment.get('intakePump1').speed == 90.0
    print("Test passed!")


def test_setpoint_validation():
    print("=== Test: Setpoint Validation ===")
    sim = SimulationSession()

    for bad in (81, -1, 'abc', None, True, float('nan')):
        try:
            sim.issue_command('alumFeed', 'applySetpoint', {'value': bad})
            assert False, f"Expected OutOfRange for {bad!r}"
        except OutOfRange:
            pass
    assert sim.equipment.get('alumFeed').setpoint == 18.0, "Rejected setpoints leave state untouched"
    assert len(sim.history) == 0

    result = sim.issue_command('alumFeed', 'applySetpoint', {'value': 25})
    assert result.before == 18.0 and result.after == 25.0
    assert sim.history.events()[0].description == 'Alum dose setpoint: 18.0 → 25.0 mg/L'
    assert sim.history.events()[0].category == 'setpoint'
    print("Test passed!")


def test_unknown_and_illegal_commands():
    print("=== Test: Unknown / Illegal Commands ===")
    sim = SimulationSession()

    try:
        sim.issue_command('intakePump9', 'start')
        assert False, "Expected UnknownEntity"
    except UnknownEntity:
        pass

    try:
        sim.issue_command('intakeValve', 'start')
        assert False, "Valves cannot 'start'"
    except InvalidTransition:
        pass

    try:
        sim.issue_command('filter1', 'abortBackwash')
        assert False, "abortBackwash while normal"
    except InvalidTransition:
        pass
    assert len(sim.history) == 0
    print("Test passed!")


def test_backwash_conflict_and_completion():
    print("=== Test: Backwash ===")
    sim = SimulationSession()

    print("1. Starting backwash...")
    result = sim.issue_command('filter1', 'startBackwash')
    assert result.after == 'backwashing'
    assert sim.history.events()[0].category == 'backwash'
    assert sim.equipment.get('filter1').run_time == 0.0

    print("2. Second start is a conflict...")
    try:
        sim.issue_command('filter1', 'startBackwash')
        assert False, "Expected ConflictingActivation"
    except ConflictingActivation:
        pass

    print("3. Head loss resets on the next tick...")
    snapshot = sim.tick()
    sed = snapshot.stages['sedimentation']
    assert sed['backwash_in_progress'] is True
    assert sed['filter_head_loss'] == 0.5, f"Head loss {sed['filter_head_loss']}"

    print("4. Backwash completes after 600 simulated seconds...")
    sim.set_speed(10)
    for _ in range(121):
        snapshot = sim.tick()
    assert snapshot.equipment['filter1']['state'] == 'normal'
    assert snapshot.stages['sedimentation']['backwash_in_progress'] is False
    print("Test passed!")


def test_scenario_trip_cleared_by_start():
    sim = SimulationSession()
    sim.equipment.trip('chlorinePump')
    unit = sim.equipment.get('chlorinePump')
    assert unit.fault and unit.state == 'stopped'
    sim.issue_command('chlorinePump', 'start')
    assert not unit.fault and unit.state == 'running'


def test_chemical_feeds_carry_state():
    sim = SimulationSession()
    equipment = sim.tick().equipment
    for feed in ('alumFeed', 'phAdjustFeed', 'chlorineFeed'):
        assert equipment[feed]['state'] == 'active', f"{feed}: {equipment[feed]['state']}"


def test_clear_screen_resets_diff_pressure():
    print("=== Test: Clear Screen ===")
    sim = SimulationSession()
    sim.set_speed(10)

    print("1. Fouled screen raises the high dP alarm...")
    sim.force_value('intake.screen_diff_pressure', 6.0)
    sim.tick()
    snapshot = sim.tick()
    alarms = [a for a in snapshot.alarms if a['tag'] == 'INT-PDT-001']
    assert alarms and alarms[0]['level'] == 'H', f"Expected H alarm on INT-PDT-001: {snapshot.alarms}"

    print("2. Clearing the screen logs one event...")
    before = len(sim.history)
    result = sim.issue_command('intakeScreen', 'clearScreen')
    assert result.before == result.after == 'normal'
    assert len(sim.history) == before + 1, "Expected exactly one history event"
    event = sim.history.events()[0]
    assert event.description == 'Intake Screen (SCR-101): screen cleared', event.description
    assert event.category == 'setpoint'

    print("3. dP drops to 0.8 psi and the alarm clears on the next tick...")
    snapshot = sim.tick()
    dp = snapshot.stages['intake']['screen_diff_pressure']
    assert dp == 0.8, f"Screen dP {dp}"
    assert not [a for a in snapshot.alarms if a['tag'] == 'INT-PDT-001'], "dP alarm still open"

    print("4. Fouling resumes from the clean value...")
    snapshot = sim.tick()
    assert 0.8 < snapshot.stages['intake']['screen_diff_pressure'] < 1.0
    print("Test passed!")


if __name__ == '__main__':
    try:
        test_pump_stop_start_round_trip()
        test_repeat_command_is_noop_success()
        test_set_speed_requires_running_pump()
        test_setpoint_validation()
        test_unknown_and_illegal_commands()
        test_backwash_conflict_and_completion()
        test_scenario_trip_cleared_by_start()
        test_chemical_feeds_carry_state()
        test_clear_screen_resets_diff_pressure()
        sys.exit(0)
    except AssertionError as e:
        print(f"Test failed: {e}")
        sys.exit(1)
