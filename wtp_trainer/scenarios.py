"""
Scenario Catalog - training scenarios with fault timelines and objectives
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple

# Fault actions understood by the injector
RAMP_SOURCE_TURBIDITY = 'ramp_source_turbidity'
TRIP_EQUIPMENT = 'trip_equipment'
OVERRIDE_SETPOINT = 'override_setpoint'
FORCE_VALUE = 'force_value'
INJECT_NOISE = 'inject_noise'

# Chemical feed -> process model override key
FEED_OVERRIDE_KEYS = {
    'alumFeed': 'alum_dose_setpoint',
    'phAdjustFeed': 'ph_adjust_dose_setpoint',
    'chlorineFeed': 'chlorine_dose_setpoint',
}


@dataclass(frozen=True)
class ScenarioFault:
    trigger_at: float
    action: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScenarioObjective:
    description: str
    predicate: Callable[[Any], bool]


@dataclass(frozen=True)
class ScenarioDefinition:
    id: str
    name: str
    description: str
    difficulty: str
    duration: float                    # simulated seconds, 0 = until stopped
    faults: Tuple[ScenarioFault, ...] = ()
    objectives: Tuple[ScenarioObjective, ...] = ()

    def summary(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.name,
            'description': self.description,
            'difficulty': self.difficulty,
            'duration': self.duration,
            'feature_count': len(self.faults),
        }


def _stage(snapshot, stage, name):
    return snapshot.stages[stage][name]


def _running(snapshot, unit_id):
    return snapshot.equipment[unit_id]['state'] == 'running'


SCENARIOS: List[ScenarioDefinition] = [
    ScenarioDefinition(
        id='normal-operations',
        name='Normal Shift',
        description='Steady-state operations. All equipment running normally. '
                    'Practice navigation and monitoring.',
        difficulty='Beginner',
        duration=0,
        objectives=(
            ScenarioObjective('Raw water flow ≥ 2.0 MGD',
                              lambda s: _stage(s, 'intake', 'raw_water_flow') >= 2.0),
            ScenarioObjective('Filter effluent turbidity < 0.3 NTU',
                              lambda s: _stage(s, 'sedimentation', 'filter_effluent_turbidity') < 0.3),
            ScenarioObjective('Plant Cl2 residual > 0.5 mg/L',
                              lambda s: _stage(s, 'disinfection', 'chlorine_residual_plant') > 0.5),
        ),
    ),
    ScenarioDefinition(
        id='high-turbidity-storm',
        name='Storm Runoff Event',
        description='Heavy rainfall rapidly drives source turbidity from 15 to 300 NTU. '
                    'Increase alum dosing aggressively to protect the filter.',
        difficulty='Intermediate',
        duration=300,
        faults=(
            ScenarioFault(10, RAMP_SOURCE_TURBIDITY, {'target': 80.0, 'duration': 10.0}),
            ScenarioFault(10, INJECT_NOISE, {'field': 'raw_turbidity', 'std': 2.0}),
            ScenarioFault(30, RAMP_SOURCE_TURBIDITY, {'target': 180.0, 'duration': 10.0}),
            ScenarioFault(60, RAMP_SOURCE_TURBIDITY, {'target': 300.0, 'duration': 10.0}),
            ScenarioFault(120, RAMP_SOURCE_TURBIDITY, {'target': 120.0, 'duration': 15.0}),
            ScenarioFault(210, RAMP_SOURCE_TURBIDITY, {'target': 20.0, 'duration': 30.0}),
        ),
        objectives=(
            ScenarioObjective('Alum dose ≥ 30 mg/L',
                              lambda s: _stage(s, 'coagulation', 'alum_dose_rate') >= 30.0),
            ScenarioObjective('Filter effluent turbidity < 0.3 NTU',
                              lambda s: _stage(s, 'sedimentation', 'filter_effluent_turbidity') < 0.3),
        ),
    ),
    ScenarioDefinition(
        id='intake-pump-failure',
        name='Intake Pump 1 Failure',
        description='Pump 1 trips at T+15s. Raw water flow drops. Start Pump 2 and '
                    'restore flow before the wet well empties.',
        difficulty='Intermediate',
        duration=0,
        faults=(
            ScenarioFault(15, TRIP_EQUIPMENT, {'equipment_id': 'intakePump1'}),
        ),
        objectives=(
            ScenarioObjective('Intake Pump 2 running', lambda s: _running(s, 'intakePump2')),
            ScenarioObjective('Raw water flow ≥ 2.0 MGD',
                              lambda s: _stage(s, 'intake', 'raw_water_flow') >= 2.0),
        ),
    ),
    ScenarioDefinition(
        id='filter-breakthrough',
        name='Filter Breakthrough',
        description='Filter is pre-loaded at 71 hours run time with 8.5 ft head loss, past '
                    'the 6 ft breakthrough onset. Effluent turbidity is rising. '
                    'Initiate backwash immediately.',
        difficulty='Advanced',
        duration=0,
        faults=(
            ScenarioFault(0, FORCE_VALUE, {'values': {
                'sedimentation.filter_head_loss': 8.5,
                'filter1.run_time': 71.0,
            }}),
        ),
        objectives=(
            ScenarioObjective('Backwash completed (not in progress)',
                              lambda s: not _stage(s, 'sedimentation', 'backwash_in_progress')),
            ScenarioObjective('Filter head loss < 4.0 ft',
                              lambda s: _stage(s, 'sedimentation', 'filter_head_loss') < 4.0),
            ScenarioObjective('Filter effluent turbidity < 0.3 NTU',
                              lambda s: _stage(s, 'sedimentation', 'filter_effluent_turbidity') < 0.3),
        ),
    ),
    ScenarioDefinition(
        id='chlorine-dosing-fault',
        name='Chlorine Pump Fault',
        description='Chlorine dose signal is lost at T+5s and the pump trips at T+15s. '
                    'Residual decays toward zero. Restore dosing before a distribution '
                    'violation occurs.',
        difficulty='Advanced',
        duration=0,
        faults=(
            ScenarioFault(5, OVERRIDE_SETPOINT, {'equipment_id': 'chlorineFeed', 'value': 0.0}),
            ScenarioFault(15, TRIP_EQUIPMENT, {'equipment_id': 'chlorinePump'}),
        ),
        objectives=(
            ScenarioObjective('Chlorine pump running', lambda s: _running(s, 'chlorinePump')),
            ScenarioObjective('Plant Cl2 residual > 0.5 mg/L',
                              lambda s: _stage(s, 'disinfection', 'chlorine_residual_plant') > 0.5),
            ScenarioObjective('Distribution Cl2 residual > 0.2 mg/L',
                              lambda s: _stage(s, 'disinfection', 'chlorine_residual_dist') > 0.2),
        ),
    ),
    ScenarioDefinition(
        id='alum-overdose',
        name='Stuck Alum Valve',
        description='Alum dose doubles due to stuck valve. Monitor and correct pH drop.',
        difficulty='Intermediate',
        duration=0,
        faults=(
            ScenarioFault(30, OVERRIDE_SETPOINT, {'equipment_id': 'alumFeed', 'value': 36.0}),
        ),
        objectives=(
            ScenarioObjective('Alum dose ≤ 25 mg/L',
                              lambda s: _stage(s, 'coagulation', 'alum_dose_rate') <= 25.0),
            ScenarioObjective('Finished water pH ≥ 6.8',
                              lambda s: _stage(s, 'disinfection', 'finished_water_ph') >= 6.8),
        ),
    ),
    ScenarioDefinition(
        id='sludge-blanket-buildup',
        name='Sludge Pump Failure',
        description='Clarifier enters the scenario with an elevated sludge blanket at 3.5 ft. '
                    'The sludge pump then trips at T+15s. Restore the pump before the '
                    'blanket breaches 4 ft and clarifier turbidity spikes.',
        difficulty='Intermediate',
        duration=0,
        faults=(
            ScenarioFault(0, FORCE_VALUE, {'values': {'sedimentation.sludge_blanket_level': 3.5}}),
            ScenarioFault(15, TRIP_EQUIPMENT, {'equipment_id': 'sludgePump'}),
        ),
        objectives=(
            ScenarioObjective('Sludge pump running', lambda s: _running(s, 'sludgePump')),
            ScenarioObjective('Sludge blanket < 4.0 ft',
                              lambda s: _stage(s, 'sedimentation', 'sludge_blanket_level') < 4.0),
        ),
    ),
]
