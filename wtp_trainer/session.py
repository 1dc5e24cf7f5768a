"""
Simulation Session - owns the plant, the clock and the single tutorial/scenario run
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from wtp_trainer import config
from wtp_trainer.alarm_engine import AlarmEngine
from wtp_trainer.broadcaster import RealtimeBroadcaster
from wtp_trainer.equipment import EquipmentStateMachine
from wtp_trainer.history import EventHistoryLog
from wtp_trainer.process_model import ProcessModel
from wtp_trainer.scenario_manager import ScenarioFaultInjector, force_value
from wtp_trainer.scheduler import TickScheduler
from wtp_trainer.tags import TagCatalog
from wtp_trainer.tutorial_engine import TutorialStepEngine

logger = logging.getLogger(__name__)

# Trend display
TREND_RANGES = {
    '1h': 3600,
    '8h': 28800,
    '24h': 86400,
}
TREND_POINTS = 360


def _freeze(value):
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value):
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class ProcessState:
    """Immutable per-tick snapshot of the whole plant"""
    tick: int
    timestamp: str
    elapsed: float
    speed_multiplier: int
    stages: Mapping[str, Mapping[str, Any]]
    equipment: Mapping[str, Mapping[str, Any]]
    tags: Mapping[str, Any]
    alarms: Tuple[Mapping[str, Any], ...]
    active_scenario: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tick': self.tick,
            'timestamp': self.timestamp,
            'elapsed': self.elapsed,
            'speed_multiplier': self.speed_multiplier,
            'stages': _thaw(self.stages),
            'equipment': _thaw(self.equipment),
            'tags': _thaw(self.tags),
            'alarms': _thaw(self.alarms),
            'active_scenario': self.active_scenario,
        }


class SimulationSession:
    """One shared simulation; every mutation runs under self.lock"""

    def __init__(self, period=config.TICK_PERIOD_S, deterministic=config.DETERMINISTIC,
                 seed=config.RANDOM_SEED, start_time=None, tutorial_catalog=None,
                 scenario_catalog=None, predicates=None):
        self.lock = threading.RLock()
        self.start_time = start_time or datetime.now(timezone.utc).replace(microsecond=0)

        self.history = EventHistoryLog()
        self.tags = TagCatalog()
        self.equipment = EquipmentStateMachine(self.history, self.timestamp)
        self.model = ProcessModel(self.history, self.timestamp, deterministic=deterministic, seed=seed)
        self.alarms = AlarmEngine(self.tags)
        self.injector = ScenarioFaultInjector(self.equipment, self.model, self.history, self.timestamp,
                                              catalog=scenario_catalog)
        self.broadcaster = RealtimeBroadcaster()
        self.tutorial = TutorialStepEngine(tutorial_catalog, predicates, apply_effect=self.force_value)
        self.scheduler = TickScheduler(self._advance, self.lock, period)

        self.trend_history = deque(maxlen=config.TREND_BUFFER_SIZE)
        self.snapshot = self._build_snapshot(0, 0.0, 1)
        self.tutorial.last_snapshot = self.snapshot

    # --- CLOCK ---

    def timestamp(self) -> str:
        """Simulated wall time"""
        return (self.start_time + timedelta(seconds=self.scheduler.elapsed)).isoformat()

    def tick(self) -> ProcessState:
        return self.scheduler.tick()

    def start(self):
        self.scheduler.start()

    def stop(self):
        self.scheduler.stop()

    # --- TICK PIPELINE ---

    def _build_snapshot(self, tick: int, elapsed: float, speed: int, tag_values=None) -> ProcessState:
        if tag_values is None:
            tag_values = self.tags.extract_values(self.model.stages)
        return ProcessState(
            tick=tick,
            timestamp=self.timestamp(),
            elapsed=elapsed,
            speed_multiplier=speed,
            stages=_freeze(self.model.view()),
            equipment=_freeze(self.equipment.view()),
            tags=_freeze(tag_values),
            alarms=_freeze(self.alarms.active_alarms()),
            active_scenario=self.injector.active_id,
        )

    def _advance(self, tick: int, elapsed: float, dt: float, speed: int) -> ProcessState:
        """One tick: equipment, scenario, process, alarms, snapshot, tutorial, broadcast"""
        self.equipment.advance(dt)
        self.injector.update(dt)
        self.model.update(dt, self.equipment.view(), self.injector.overrides)

        tag_values = self.tags.extract_values(self.model.stages)
        self.alarms.evaluate(tag_values, self.timestamp(), elapsed)

        snapshot = self._build_snapshot(tick, elapsed, speed, tag_values)
        self.snapshot = snapshot
        self._record_trend(snapshot)

        self.tutorial.evaluate(snapshot)
        self.broadcaster.publish(self.payload())
        return snapshot

    def payload(self) -> Dict[str, Any]:
        """Broadcast body: snapshot, tutorial view and scenario status"""
        with self.lock:
            snapshot = self.snapshot
            return {
                'snapshot': snapshot.to_dict(),
                'tutorial': self.tutorial.view(),
                'scenario': self.injector.status(snapshot),
            }

    # --- TRENDS ---

    def _record_trend(self, snapshot: ProcessState):
        """Record current values to trend buffer"""
        record = {'timestamp': snapshot.timestamp, 'elapsed': snapshot.elapsed}
        for tag, value in snapshot.tags.items():
            if self.tags.describe(tag)['type'] == 'analog':
                record[tag] = value
        self.trend_history.append(record)

    def trends(self, time_range: str = '1h') -> Dict[str, Any]:
        if time_range not in TREND_RANGES:
            time_range = '1h'
        with self.lock:
            data_points = list(self.trend_history)

        if data_points:
            cutoff = data_points[-1]['elapsed'] - TREND_RANGES[time_range]
            data_points = [p for p in data_points if p['elapsed'] >= cutoff]

        # Downsample if too many points (max 360 points for display)
        if len(data_points) > TREND_POINTS:
            step = -(-len(data_points) // TREND_POINTS)
            data_points = data_points[::step]

        return {
            'range': time_range,
            'points': len(data_points),
            'data': data_points,
            'tags': [tag for tag, info in self.tags.tags.items() if info['type'] == 'analog'],
        }

    # --- OPERATOR ACTIONS ---

    def issue_command(self, equipment_id: str, command: str, params=None):
        with self.lock:
            result = self.equipment.issue(equipment_id, command, params)
            if command == 'applySetpoint':
                self.injector.release_setpoint(equipment_id)
            return result

    def set_condition(self, name: str, value):
        with self.lock:
            return self.model.set_condition(name, value)

    def set_speed(self, multiplier):
        with self.lock:
            before, after = self.scheduler.set_speed_multiplier(multiplier)
            event = self.history.record(
                category='setpoint',
                description=f"Simulation speed: {before}× → {after}×",
                before=before,
                after=after,
                timestamp=self.timestamp(),
            )
            return before, after, event

    def force_value(self, path: str, value):
        """Force a starting condition ('stage.field' or 'equipment_id.attribute')"""
        with self.lock:
            force_value(self.equipment, self.model, path, value)
            self._stage_tutorial_view()

    def _stage_tutorial_view(self):
        """Unpublished snapshot of the current state for tutorial chaining; the next tick publishes"""
        self.tutorial.last_snapshot = self._build_snapshot(
            self.scheduler.tick_number, self.scheduler.elapsed, self.scheduler.speed_multiplier)

    def acknowledge(self, alarm_id: str):
        with self.lock:
            return self.alarms.acknowledge(alarm_id, self.timestamp())

    def set_thresholds(self, tag: str, levels):
        with self.lock:
            return self.alarms.set_thresholds(tag, levels, self.timestamp())

    # --- SCENARIOS ---

    def start_scenario(self, scenario_id: str):
        with self.lock:
            return self.injector.start(scenario_id)

    def stop_scenario(self):
        with self.lock:
            return self.injector.stop()

    def scenario_status(self):
        with self.lock:
            return self.injector.status(self.snapshot)

    # --- TUTORIALS ---

    def start_tutorial(self, tutorial_id: str):
        with self.lock:
            return self.tutorial.start(tutorial_id, started_at=self.timestamp())

    def tutorial_action(self, action: str):
        """next / back / finish / exit"""
        with self.lock:
            return getattr(self.tutorial, action)()

    def tutorial_ui_event(self, event_id: str):
        with self.lock:
            return self.tutorial.ui_event(event_id)

    def tutorial_view(self):
        with self.lock:
            return self.tutorial.view()

    # --- HISTORY ---

    def clear_history(self):
        with self.lock:
            self.history.clear()

    def reset(self):
        """Reset plant, alarms, scenario, tutorial and trends; the tick counter keeps running"""
        with self.lock:
            self.injector.reset()
            self.equipment.reset()
            self.model.reset()
            self.alarms.reset()
            self.tutorial.exit()
            self.trend_history.clear()
            self._stage_tutorial_view()
            logger.info("Simulation reset")
