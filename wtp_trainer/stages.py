"""
Process Stages - per-stage submodels of the water treatment plant
Stages: intake, coagulation/flocculation, sedimentation/filtration, disinfection

Each stage is a function of (previous stage values, equipment view, upstream
stage values, scenario overrides, dt) returning a new dict. Lags are first
order: x += (target - x) * (1 - exp(-dt / tau)).
"""

import math
import logging
import numpy as np
from typing import Dict, Any, Callable

from wtp_trainer import config

logger = logging.getLogger(__name__)

# Field bounds shared by stage updates and injected noise
BOUNDS = {
    'raw_water_flow': (0.0, 10.0),
    'raw_water_level': (0.0, 15.0),
    'screen_diff_pressure': (0.5, 12.0),
    'raw_turbidity': (1.0, 600.0),
    'alum_dose_rate': (0.0, 80.0),
    'ph_adjust_dose_rate': (0.0, 10.0),
    'floc_basin_turbidity': (0.5, 600.0),
    'rapid_mixer_speed': (0.0, 200.0),
    'slow_mixer_speed': (0.0, 100.0),
    'clarifier_turbidity': (0.1, 200.0),
    'sludge_blanket_level': (0.0, 10.0),
    'filter_head_loss': (0.0, 12.0),
    'filter_effluent_turbidity': (0.01, 10.0),
    'chlorine_dose_rate': (0.0, 10.0),
    'chlorine_residual_plant': (0.0, 5.0),
    'chlorine_residual_dist': (0.0, 4.0),
    'finished_water_ph': (6.0, 9.0),
    'clearwell_level': (0.0, 20.0),
}

INTAKE_PUMPS = ('intakePump1', 'intakePump2')
PUMP_CAPACITY_MGD = 4.5
SCREEN_DRIFT = 0.0005        # psi/s
SCREEN_CLEAN_DP = 0.8        # psi after screen cleaning
HEAD_LOSS_CLEAN = 0.5        # ft after backwash
BREAKTHROUGH_HEAD_LOSS = 6.0
NOMINAL_FLOW = 3.375
NOMINAL_DEMAND = 3.0


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def clamp_field(field: str, value: float) -> float:
    if field in BOUNDS:
        lo, hi = BOUNDS[field]
        return clamp(value, lo, hi)
    return value


def lag(dt: float, tau: float) -> float:
    """First-order lag factor"""
    return 1.0 - math.exp(-dt / tau)


def approach(current: float, target: float, dt: float, tau: float) -> float:
    return current + (target - current) * lag(dt, tau)


def running(equipment: Dict[str, Dict[str, Any]], unit_id: str) -> bool:
    unit = equipment[unit_id]
    return unit['state'] == 'running' and not unit['fault']


def derive(prev: Dict[str, Any], field: str, compute: Callable[[], float]) -> float:
    """Compute a derived value; keep the prior value on failure or non-finite result"""
    try:
        value = compute()
    except (ArithmeticError, ValueError) as e:
        logger.warning(f"Derived value {field} failed ({e}); keeping {prev[field]}")
        return prev[field]
    if value is None or not np.isfinite(value):
        logger.warning(f"Derived value {field} not finite ({value}); keeping {prev[field]}")
        return prev[field]
    return clamp_field(field, float(value))


def intake(prev: Dict[str, Any], equipment: Dict[str, Dict[str, Any]],
           overrides: Dict[str, Any], dt: float) -> Dict[str, Any]:
    """Intake: pumped flow, wet-well level, screen fouling, raw turbidity"""
    s = dict(prev)

    # --- FLOW ---
    valve_factor = 1.0 if equipment['intakeValve']['state'] == 'open' else 0.0
    pump_flow = sum(
        PUMP_CAPACITY_MGD * equipment[pump]['speed'] / 100.0
        for pump in INTAKE_PUMPS if running(equipment, pump)
    )
    target_flow = pump_flow * valve_factor
    s['raw_water_flow'] = derive(prev, 'raw_water_flow',
                                 lambda: approach(prev['raw_water_flow'], target_flow, dt, 5.0))

    # --- WET WELL ---
    s['raw_water_level'] = derive(
        prev, 'raw_water_level',
        lambda: prev['raw_water_level'] + (prev['natural_inflow'] - s['raw_water_flow'] * 0.02) * dt)

    # --- SCREENS ---
    screen = equipment['intakeScreen']
    if screen['clean_episode'] != prev['screen_clean_episode']:
        s['screen_clean_episode'] = screen['clean_episode']
        s['screen_diff_pressure'] = SCREEN_CLEAN_DP
    else:
        s['screen_diff_pressure'] = derive(prev, 'screen_diff_pressure',
                                           lambda: prev['screen_diff_pressure'] + SCREEN_DRIFT * dt)

    # --- TURBIDITY ---
    ramp = overrides.get('source_turbidity')
    tau = 100.0
    if ramp is not None:
        start = prev['scenario_turbidity']
        if start is None:
            start = prev['raw_turbidity']
        s['scenario_turbidity'] = approach(start, ramp['target'], dt, max(ramp['tau'], dt))
        base = s['scenario_turbidity']
        tau = max(ramp['tau'], dt)
    else:
        s['scenario_turbidity'] = None
        base = prev['source_turbidity_base']

    s['turbidity_phase'] = prev['turbidity_phase'] + 0.001 * dt
    amplitude = max(2.0, base * 0.3)
    phase = s['turbidity_phase']
    seasonal = (base
                + math.sin(phase) * amplitude * 0.6
                + math.cos(phase * 0.3) * amplitude * 0.4)
    s['raw_turbidity'] = derive(prev, 'raw_turbidity',
                                lambda: approach(prev['raw_turbidity'], seasonal, dt, tau))
    return s


def coagulation(prev: Dict[str, Any], upstream: Dict[str, Any], equipment: Dict[str, Dict[str, Any]],
                overrides: Dict[str, Any], dt: float) -> Dict[str, Any]:
    """Coagulation/flocculation: chemical dose rates and floc basin turbidity"""
    s = dict(prev)

    # --- CHEMICAL FEED ---
    alum_sp = overrides.get('alum_dose_setpoint', equipment['alumFeed']['setpoint'])
    ph_sp = overrides.get('ph_adjust_dose_setpoint', equipment['phAdjustFeed']['setpoint'])
    s['alum_dose_setpoint'] = alum_sp
    s['ph_adjust_dose_setpoint'] = ph_sp

    if running(equipment, 'alumPump'):
        s['alum_dose_rate'] = derive(prev, 'alum_dose_rate',
                                     lambda: approach(prev['alum_dose_rate'], alum_sp, dt, 5.0))
    else:
        s['alum_dose_rate'] = derive(prev, 'alum_dose_rate',
                                     lambda: approach(prev['alum_dose_rate'], 0.0, dt, 5.0))

    if running(equipment, 'phAdjustPump'):
        s['ph_adjust_dose_rate'] = derive(prev, 'ph_adjust_dose_rate',
                                          lambda: approach(prev['ph_adjust_dose_rate'], ph_sp, dt, 5.0))
    else:
        s['ph_adjust_dose_rate'] = derive(prev, 'ph_adjust_dose_rate',
                                          lambda: approach(prev['ph_adjust_dose_rate'], 0.0, dt, 5.0))

    # --- MIXING ---
    rapid_on = running(equipment, 'rapidMixer')
    slow_on = running(equipment, 'slowMixer')
    mixing_factor = (1.2 if rapid_on else 0.5) * (1.1 if slow_on else 0.7)
    s['rapid_mixer_speed'] = derive(prev, 'rapid_mixer_speed',
                                    lambda: approach(prev['rapid_mixer_speed'], 120.0 if rapid_on else 0.0, dt, 5.0))
    s['slow_mixer_speed'] = derive(prev, 'slow_mixer_speed',
                                   lambda: approach(prev['slow_mixer_speed'], 45.0 if slow_on else 0.0, dt, 5.0))

    # --- FLOC ---
    raw = upstream['raw_turbidity']
    temp_factor = clamp((upstream['source_temperature'] - 1.0) / 19.0, 0.35, 1.0)
    demand = 4.0 + 0.6 * raw

    def floc_target():
        effectiveness = 1.0 - math.exp(-s['alum_dose_rate'] * temp_factor / demand)
        return raw * (1.0 - 0.9 * effectiveness) / mixing_factor

    target = derive(prev, 'floc_basin_turbidity', floc_target)
    s['floc_basin_turbidity'] = derive(prev, 'floc_basin_turbidity',
                                       lambda: approach(prev['floc_basin_turbidity'], target, dt, 25.0))
    return s


def sedimentation(prev: Dict[str, Any], upstream: Dict[str, Any], equipment: Dict[str, Dict[str, Any]],
                  overrides: Dict[str, Any], dt: float) -> Dict[str, Any]:
    """Sedimentation/filtration: clarifier, sludge blanket, filter head loss, effluent"""
    s = dict(prev)
    filter1 = equipment['filter1']

    # --- CLARIFIER ---
    def clarifier_target():
        sludge_impact = clamp(prev['sludge_blanket_level'] / 6.0, 0.0, 0.5)
        efficiency = 0.9 * (1.0 - sludge_impact)
        return upstream['floc_basin_turbidity'] * (1.0 - efficiency)

    target = clarifier_target()
    s['clarifier_turbidity'] = derive(prev, 'clarifier_turbidity',
                                      lambda: approach(prev['clarifier_turbidity'], target, dt, 10.0))

    # --- SLUDGE ---
    removal = 0.0
    if running(equipment, 'sludgePump'):
        removal = 0.01 * equipment['sludgePump']['speed'] / 100.0 * dt
    s['sludge_blanket_level'] = derive(prev, 'sludge_blanket_level',
                                       lambda: prev['sludge_blanket_level'] + 0.002 * dt - removal)

    # --- FILTER ---
    backwashing = filter1['state'] == 'backwashing'
    s['backwash_in_progress'] = backwashing
    s['backwash_time_remaining'] = filter1['backwash_remaining']
    s['filter_run_time'] = filter1['run_time']

    if filter1['backwash_episode'] != prev['backwash_episode']:
        s['backwash_episode'] = filter1['backwash_episode']
        s['filter_head_loss'] = HEAD_LOSS_CLEAN
    elif not backwashing and filter1['run_time'] < config.FILTER_RUNTIME_LIMIT_H:
        s['filter_head_loss'] = derive(
            prev, 'filter_head_loss',
            lambda: prev['filter_head_loss'] + 0.0002 * dt * (1.0 + s['clarifier_turbidity'] / 5.0))

    breakthrough = clamp((s['filter_head_loss'] - BREAKTHROUGH_HEAD_LOSS) / 3.0, 0.0, 1.0)
    effluent_target = s['clarifier_turbidity'] * 0.05 + breakthrough * 2.0
    s['filter_effluent_turbidity'] = derive(
        prev, 'filter_effluent_turbidity',
        lambda: approach(prev['filter_effluent_turbidity'], effluent_target, dt, 16.0))
    return s


def disinfection(prev: Dict[str, Any], upstream: Dict[str, Any], coag: Dict[str, Any], intake_stage: Dict[str, Any],
                 equipment: Dict[str, Dict[str, Any]], overrides: Dict[str, Any], dt: float) -> Dict[str, Any]:
    """Disinfection: chlorine dose and residuals, finished pH, clearwell"""
    s = dict(prev)

    # --- CHLORINE ---
    cl_sp = overrides.get('chlorine_dose_setpoint', equipment['chlorineFeed']['setpoint'])
    s['chlorine_dose_setpoint'] = cl_sp
    if running(equipment, 'chlorinePump'):
        s['chlorine_dose_rate'] = derive(prev, 'chlorine_dose_rate',
                                         lambda: approach(prev['chlorine_dose_rate'], cl_sp, dt, 5.0))
    else:
        s['chlorine_dose_rate'] = derive(prev, 'chlorine_dose_rate',
                                         lambda: approach(prev['chlorine_dose_rate'], 0.0, dt, 10.0))

    plant_target = s['chlorine_dose_rate'] * 0.85 - upstream['filter_effluent_turbidity'] * 0.1
    s['chlorine_residual_plant'] = derive(
        prev, 'chlorine_residual_plant',
        lambda: approach(prev['chlorine_residual_plant'], plant_target, dt, 10.0))

    # travel time is inversely proportional to demand
    demand = prev['distribution_demand']
    s['chlorine_residual_dist'] = derive(
        prev, 'chlorine_residual_dist',
        lambda: approach(prev['chlorine_residual_dist'],
                         s['chlorine_residual_plant'] * math.exp(-0.2 * 1.5 / demand), dt, 16.0))

    # --- pH ---
    ph_target = (7.0 + coag['ph_adjust_dose_rate'] * 0.15
                 - (coag['alum_dose_rate'] - 18.0) * 0.01
                 + (intake_stage['source_ph'] - 7.2) * 0.3)
    s['finished_water_ph'] = derive(prev, 'finished_water_ph',
                                    lambda: approach(prev['finished_water_ph'], ph_target, dt, 25.0))

    # --- CLEARWELL ---
    inflow = 0.0 if upstream['backwash_in_progress'] else 0.02 * intake_stage['raw_water_flow'] / NOMINAL_FLOW
    outflow = 0.02 * demand / NOMINAL_DEMAND
    s['clearwell_level'] = derive(prev, 'clearwell_level',
                                  lambda: prev['clearwell_level'] + (inflow - outflow) * dt)
    return s
