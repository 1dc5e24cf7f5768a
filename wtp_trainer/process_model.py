"""
Process Model - Water Treatment Plant Process Simulation
Simulates: intake, coagulation/flocculation, sedimentation/filtration,
           disinfection
"""

import copy
import logging
import numpy as np
from typing import Dict, Any

from wtp_trainer import config, stages
from wtp_trainer.equipment import number_param
from wtp_trainer.errors import OutOfRange, UnknownEntity

logger = logging.getLogger(__name__)

STAGE_ORDER = ('intake', 'coagulation', 'sedimentation', 'disinfection')


class ProcessModel:
    """Process model for a small conventional WTP"""

    def __init__(self, history, clock, deterministic=True, seed=42):
        self.history = history
        self.clock = clock
        self.deterministic = deterministic
        self.seed = seed
        if deterministic:
            self.rng = np.random.RandomState(seed)
        else:
            self.rng = np.random.RandomState()

        self.stages = copy.deepcopy(config.INITIAL_STAGES)

    def reset(self):
        """Reset to initial stage values and reseed"""
        if self.deterministic:
            self.rng = np.random.RandomState(self.seed)
        self.stages = copy.deepcopy(config.INITIAL_STAGES)

    def _noise(self, mean=0, std=1.0):
        """Generate noise using appropriate RNG"""
        return self.rng.normal(mean, std)

    def _apply_noise(self, stage: Dict[str, Any], noise: Dict[str, float]):
        for field, std in noise.items():
            if field in stage and std > 0:
                stage[field] = stages.clamp_field(field, stage[field] + self._noise(0, std))

    def update(self, dt: float, equipment: Dict[str, Dict[str, Any]], overrides: Dict[str, Any]):
        """Advance every stage by dt simulated seconds, upstream first"""
        noise = overrides.get('noise', {})

        intake = stages.intake(self.stages['intake'], equipment, overrides, dt)
        self._apply_noise(intake, noise)

        coag = stages.coagulation(self.stages['coagulation'], intake, equipment, overrides, dt)
        self._apply_noise(coag, noise)

        sed = stages.sedimentation(self.stages['sedimentation'], coag, equipment, overrides, dt)
        self._apply_noise(sed, noise)

        dis = stages.disinfection(self.stages['disinfection'], sed, coag, intake, equipment, overrides, dt)
        self._apply_noise(dis, noise)

        self.stages = {
            'intake': intake,
            'coagulation': coag,
            'sedimentation': sed,
            'disinfection': dis,
        }
        return self.stages

    def view(self) -> Dict[str, Dict[str, Any]]:
        return {name: dict(values) for name, values in self.stages.items()}

    def set_condition(self, name: str, value):
        """Instructor-set source water / demand condition"""
        if name not in config.PROCESS_CONDITIONS:
            raise UnknownEntity(f"Unknown process condition: {name}")
        stage, field, label, unit, lo, hi, decimals = config.PROCESS_CONDITIONS[name]
        value = number_param({'value': value}, 'value')
        if not lo <= value <= hi:
            raise OutOfRange(f"{label} {value} outside [{lo}, {hi}] {unit}".rstrip())

        before = self.stages[stage][field]
        self.stages[stage][field] = value
        description = f"{label}: {before:.{decimals}f} → {value:.{decimals}f} {unit}".rstrip()
        event = self.history.record(
            category='setpoint',
            description=description,
            before=before,
            after=value,
            timestamp=self.clock(),
        )
        logger.info(f"Condition changed: {description}")
        return before, value, event

    def force(self, stage: str, field: str, value):
        """Set a starting condition directly (tutorials, scenarios)"""
        if stage not in self.stages or field not in self.stages[stage]:
            raise UnknownEntity(f"Unknown process value: {stage}.{field}")
        self.stages[stage][field] = value
        logger.debug(f"Forced {stage}.{field} = {value}")
