"""
Scenario Manager - Runs one training scenario at a time and injects its faults
"""

import logging
from typing import Dict, Any, Optional

from wtp_trainer import scenarios as catalog_mod
from wtp_trainer.errors import UnknownEntity, ConflictingActivation, OutOfRange

logger = logging.getLogger(__name__)


def force_value(equipment, model, path: str, value):
    """Force 'stage.field' on the process model or 'equipment_id.attribute' on equipment"""
    head, _, attr = path.partition('.')
    if not attr:
        raise UnknownEntity(f"Force path must be '<stage|equipment>.<field>', got {path!r}")
    if head in model.stages:
        model.force(head, attr, value)
    else:
        equipment.force(head, attr, value)


class ScenarioFaultInjector:
    """Perturbs process model inputs while a scenario is active"""

    def __init__(self, equipment, model, history, clock, catalog=None):
        self.equipment = equipment
        self.model = model
        self.history = history
        self.clock = clock
        self.scenario_defs = {s.id: s for s in (catalog or catalog_mod.SCENARIOS)}

        self.active = None
        self.elapsed = 0.0
        self._fired = set()
        self._overrides = {}

    @property
    def active_id(self) -> Optional[str]:
        return self.active.id if self.active else None

    @property
    def overrides(self) -> Dict[str, Any]:
        """Copy of the overrides the process model reads this tick"""
        result = dict(self._overrides)
        if 'noise' in result:
            result['noise'] = dict(result['noise'])
        return result

    def _event(self, description: str, after=None):
        return self.history.record(
            category='scenario',
            description=description,
            after=after,
            timestamp=self.clock(),
        )

    def start(self, scenario_id: str):
        """Start a scenario"""
        scenario = self.scenario_defs.get(scenario_id)
        if scenario is None:
            raise UnknownEntity(f"Unknown scenario: {scenario_id}")
        if self.active is not None:
            raise ConflictingActivation(
                f"Scenario {self.active.id} is already active; stop it first")

        self._overrides = {}
        self._fired = set()
        self.elapsed = 0.0
        self.active = scenario

        event = self._event(f"Scenario started: {scenario.name}", after=scenario.id)
        logger.info(f"Scenario started: {scenario.id}")

        for index, fault in enumerate(scenario.faults):
            if fault.trigger_at <= 0:
                self._fire(index, fault)
        return event

    def stop(self, reason: str = 'stopped'):
        """Stop the active scenario; no-op when none is active"""
        if self.active is None:
            return None
        scenario = self.active
        self.active = None
        self._overrides = {}
        self._fired = set()
        self.equipment.clear_faults()
        event = self._event(f"Scenario {reason}: {scenario.name}", after=None)
        logger.info(f"Scenario {reason}: {scenario.id}")
        return event

    def reset(self):
        self.active = None
        self.elapsed = 0.0
        self._overrides = {}
        self._fired = set()

    def update(self, dt: float):
        """Fire due faults; auto-stop after the scenario duration"""
        if self.active is None:
            return
        self.elapsed += dt

        for index, fault in enumerate(self.active.faults):
            if index not in self._fired and self.elapsed >= fault.trigger_at:
                self._fire(index, fault)

        if self.active.duration > 0 and self.elapsed >= self.active.duration:
            self.stop(reason='completed')

    def release_setpoint(self, equipment_id: str):
        """Operator took the feed back; drop a stuck-setpoint override"""
        key = catalog_mod.FEED_OVERRIDE_KEYS.get(equipment_id)
        if key and self._overrides.pop(key, None) is not None:
            logger.info(f"Setpoint override released on {equipment_id}")

    def _fire(self, index: int, fault):
        self._fired.add(index)
        params = fault.params
        action = fault.action

        if action == catalog_mod.RAMP_SOURCE_TURBIDITY:
            self._overrides['source_turbidity'] = {
                'target': float(params['target']),
                'tau': float(params['duration']),
            }
            self._event(f"Source turbidity ramping to {params['target']:g} NTU "
                        f"(over {params['duration']:g}s)", after=params['target'])

        elif action == catalog_mod.TRIP_EQUIPMENT:
            unit = self.equipment.get(params['equipment_id'])
            self.equipment.trip(unit.id)
            self._event(f"FAULT: {unit.name} ({unit.tag}) tripped", after='stopped')

        elif action == catalog_mod.OVERRIDE_SETPOINT:
            key = catalog_mod.FEED_OVERRIDE_KEYS[params['equipment_id']]
            unit = self.equipment.get(params['equipment_id'])
            self._overrides[key] = float(params['value'])
            self._event(f"{unit.label} forced to {params['value']:g} {unit.unit}", after=params['value'])

        elif action == catalog_mod.FORCE_VALUE:
            for path, value in params['values'].items():
                force_value(self.equipment, self.model, path, value)
            pretty = ', '.join(f"{path} = {value:g}" for path, value in params['values'].items())
            self._event(f"Starting condition: {pretty}")

        elif action == catalog_mod.INJECT_NOISE:
            noise = self._overrides.setdefault('noise', {})
            noise[params['field']] = float(params['std'])

        else:
            raise OutOfRange(f"Unknown scenario fault action: {action}")

        logger.info(f"Scenario fault fired at T+{self.elapsed:.1f}s: {action} {params}")

    def status(self, snapshot=None) -> Dict[str, Any]:
        """Active scenario, elapsed time and objective completion"""
        if self.active is None:
            return {'active': False, 'id': None}

        objectives = []
        for objective in self.active.objectives:
            met = False
            if snapshot is not None:
                try:
                    met = bool(objective.predicate(snapshot))
                except (KeyError, TypeError, ArithmeticError) as e:
                    logger.warning(f"Objective '{objective.description}' failed to evaluate: {e}")
            objectives.append({'description': objective.description, 'met': met})

        return {
            'active': True,
            'id': self.active.id,
            'name': self.active.name,
            'difficulty': self.active.difficulty,
            'elapsed': round(self.elapsed, 1),
            'duration': self.active.duration,
            'faults_fired': len(self._fired),
            'objectives': objectives,
            'complete': bool(objectives) and all(o['met'] for o in objectives),
        }

    def catalog(self):
        """Get all available scenarios with status"""
        result = []
        for scenario in self.scenario_defs.values():
            entry = scenario.summary()
            entry['active'] = scenario.id == self.active_id
            result.append(entry)
        return result
