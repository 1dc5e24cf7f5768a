"""
Equipment State Machine - validated commands for pumps, valves, feeds and filters
"""

import math
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional

from wtp_trainer import config
from wtp_trainer.errors import InvalidTransition, OutOfRange, UnknownEntity, ConflictingActivation

logger = logging.getLogger(__name__)

# Discrete states per kind
STATES = {
    config.PUMP: ('stopped', 'running'),
    config.VALVE: ('closed', 'open'),
    config.CHEMICAL_FEED: ('active',),
    config.FILTER_BED: ('normal', 'backwashing'),
    config.BACKWASH_UNIT: ('normal', 'backwashing'),
    config.SCREEN: ('normal',),
}

# Legal verbs per kind
COMMANDS = {
    config.PUMP: ('start', 'stop', 'setSpeed'),
    config.VALVE: ('open', 'close'),
    config.CHEMICAL_FEED: ('applySetpoint',),
    config.FILTER_BED: ('startBackwash', 'abortBackwash'),
    config.BACKWASH_UNIT: ('startBackwash', 'abortBackwash'),
    config.SCREEN: ('clearScreen',),
}

HISTORY_CATEGORY = {
    config.PUMP: 'pump',
    config.VALVE: 'valve',
    config.CHEMICAL_FEED: 'setpoint',
    config.FILTER_BED: 'backwash',
    config.BACKWASH_UNIT: 'backwash',
    config.SCREEN: 'setpoint',
}


@dataclass
class EquipmentUnit:
    id: str
    kind: str
    name: str
    tag: str
    stage: str
    state: str
    fault: bool = False
    speed: float = 0.0
    run_hours: float = 0.0
    # chemical feeds
    label: str = ''
    unit: str = ''
    setpoint: float = 0.0
    min: float = 0.0
    max: float = 0.0
    # filter beds
    run_time: float = 0.0
    backwash_remaining: float = 0.0
    backwash_episode: int = 0
    # screens
    clean_episode: int = 0

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CommandResult:
    equipment_id: str
    command: str
    before: Any
    after: Any
    event: Any

    def to_dict(self):
        return {
            'success': True,
            'equipment_id': self.equipment_id,
            'command': self.command,
            'before': self.before,
            'after': self.after,
            'event': self.event.to_dict(),
        }


def number_param(params: Dict[str, Any], key: str) -> float:
    """Parse a numeric command parameter"""
    if key not in params:
        raise OutOfRange(f"Missing numeric parameter '{key}'")
    value = params[key]
    if isinstance(value, bool):
        raise OutOfRange(f"Parameter '{key}' must be a number, got {value!r}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise OutOfRange(f"Parameter '{key}' must be a number, got {value!r}")
    if not math.isfinite(value):
        raise OutOfRange(f"Parameter '{key}' must be finite")
    return value


class EquipmentStateMachine:
    """Owns every equipment unit; all state changes go through here"""

    def __init__(self, history, clock):
        self.history = history
        self.clock = clock
        self.units = {}
        self.reset()

    def reset(self):
        """Reset all units to catalog state"""
        self.units = {}
        for unit_id, defn in config.EQUIPMENT.items():
            fields = {k: v for k, v in defn.items()}
            self.units[unit_id] = EquipmentUnit(id=unit_id, **fields)

    def get(self, equipment_id: str) -> EquipmentUnit:
        unit = self.units.get(equipment_id) if isinstance(equipment_id, str) else None
        if unit is None:
            raise UnknownEntity(f"Unknown equipment: {equipment_id}")
        return unit

    def view(self) -> Dict[str, Dict[str, Any]]:
        """Read-only copy of every unit for the process model"""
        return {unit_id: unit.snapshot() for unit_id, unit in self.units.items()}

    def issue(self, equipment_id: str, command: str, params: Optional[Dict[str, Any]] = None) -> CommandResult:
        """Validate and apply one operator command"""
        unit = self.get(equipment_id)
        params = params or {}

        if command not in COMMANDS[unit.kind]:
            raise InvalidTransition(
                f"Command '{command}' is not supported by {unit.kind} {equipment_id}")

        handler = getattr(self, f'_cmd_{command}')
        before, after, description = handler(unit, params)

        event = self.history.record(
            category=HISTORY_CATEGORY[unit.kind],
            description=description,
            equipment_id=unit.id,
            tag=unit.tag,
            before=before,
            after=after,
            timestamp=self.clock(),
        )
        logger.info(f"Command applied: {description}")
        return CommandResult(equipment_id, command, before, after, event)

    # --- PUMPS ---

    def _cmd_start(self, unit, params):
        if 'speed' in params and params['speed'] is not None:
            speed = number_param(params, 'speed')
            if not 0.0 <= speed <= 100.0:
                raise OutOfRange(f"{unit.name} speed {speed} outside [0, 100] %")
            unit.speed = speed
        before = unit.state
        unit.state = 'running'
        unit.fault = False
        return before, unit.state, f"{unit.name} ({unit.tag}): {before} → {unit.state}"

    def _cmd_stop(self, unit, params):
        before = unit.state
        unit.state = 'stopped'
        return before, unit.state, f"{unit.name} ({unit.tag}): {before} → {unit.state}"

    def _cmd_setSpeed(self, unit, params):
        if unit.state != 'running':
            raise InvalidTransition(f"{unit.name} must be running to change speed")
        speed = number_param(params, 'value')
        if not 0.0 <= speed <= 100.0:
            raise OutOfRange(f"{unit.name} speed {speed} outside [0, 100] %")
        before = unit.speed
        unit.speed = speed
        return before, speed, f"{unit.name} ({unit.tag}) speed: {before:g}% → {speed:g}%"

    # --- VALVES ---

    def _cmd_open(self, unit, params):
        before = unit.state
        unit.state = 'open'
        return before, unit.state, f"{unit.name} ({unit.tag}): {before} → {unit.state}"

    def _cmd_close(self, unit, params):
        before = unit.state
        unit.state = 'closed'
        return before, unit.state, f"{unit.name} ({unit.tag}): {before} → {unit.state}"

    # --- CHEMICAL FEEDS ---

    def _cmd_applySetpoint(self, unit, params):
        value = number_param(params, 'value')
        if not unit.min <= value <= unit.max:
            raise OutOfRange(
                f"{unit.label} {value} outside [{unit.min}, {unit.max}] {unit.unit}")
        before = unit.setpoint
        unit.setpoint = value
        return before, value, f"{unit.label}: {before:.1f} → {value:.1f} {unit.unit}"

    # --- FILTERS ---

    def _cmd_startBackwash(self, unit, params):
        if unit.state == 'backwashing':
            raise ConflictingActivation(f"{unit.name} is already backwashing")
        before = unit.state
        unit.state = 'backwashing'
        unit.backwash_remaining = config.BACKWASH_DURATION_S
        unit.backwash_episode += 1
        unit.run_time = 0.0
        return before, unit.state, f"{unit.name} ({unit.tag}): {before} → {unit.state}"

    def _cmd_abortBackwash(self, unit, params):
        if unit.state != 'backwashing':
            raise InvalidTransition(f"{unit.name} is not backwashing")
        before = unit.state
        unit.state = 'normal'
        unit.backwash_remaining = 0.0
        return before, unit.state, f"{unit.name} ({unit.tag}): {before} → {unit.state}"

    # --- SCREENS ---

    def _cmd_clearScreen(self, unit, params):
        unit.clean_episode += 1
        return unit.state, unit.state, f"{unit.name} ({unit.tag}): screen cleared"

    # --- TIME / SCENARIO HOOKS ---

    def advance(self, dt: float):
        """Accumulate run hours and backwash countdowns; returns units that finished backwash"""
        finished = []
        for unit in self.units.values():
            if unit.kind == config.PUMP:
                if unit.state == 'running' and not unit.fault:
                    unit.run_hours += dt / 3600.0
            elif unit.kind in (config.FILTER_BED, config.BACKWASH_UNIT):
                if unit.state == 'backwashing':
                    unit.backwash_remaining = max(0.0, unit.backwash_remaining - dt)
                    if unit.backwash_remaining <= 0:
                        unit.state = 'normal'
                        finished.append(unit.id)
                        logger.info(f"{unit.name} backwash completed")
                elif unit.run_time < config.FILTER_RUNTIME_LIMIT_H:
                    unit.run_time += dt / 3600.0
        return finished

    def trip(self, equipment_id: str):
        """Scenario fault: pump trips to stopped"""
        unit = self.get(equipment_id)
        if unit.kind != config.PUMP:
            raise InvalidTransition(f"Only pumps can trip, {equipment_id} is a {unit.kind}")
        unit.fault = True
        unit.state = 'stopped'
        logger.warning(f"FAULT: {unit.name} ({unit.tag}) tripped")

    def clear_faults(self):
        for unit in self.units.values():
            unit.fault = False

    def force(self, equipment_id: str, attribute: str, value: Any):
        """Set a starting condition without logging an operator action"""
        unit = self.get(equipment_id)
        if attribute == 'state':
            if value not in STATES[unit.kind]:
                raise InvalidTransition(f"{value!r} is not a {unit.kind} state")
        elif attribute not in ('speed', 'setpoint', 'run_time', 'run_hours'):
            raise UnknownEntity(f"Unknown equipment attribute: {attribute}")
        setattr(unit, attribute, value)
        logger.debug(f"Forced {equipment_id}.{attribute} = {value}")

    def listing(self):
        return [
            {'id': unit.id, 'kind': unit.kind, 'name': unit.name, 'tag': unit.tag,
             'stage': unit.stage, 'commands': list(COMMANDS[unit.kind])}
            for unit in self.units.values()
        ]
