"""
Configuration - environment settings and static plant tables
"""

import os

# Service
HOST = os.getenv('HOST', '0.0.0.0')
PORT = int(os.getenv('PORT', '3001'))
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_DIR = os.getenv('LOG_DIR', '/tmp/logs')

# Simulation clock
TICK_PERIOD_S = int(os.getenv('TICK_PERIOD_MS', '500')) / 1000.0
SPEED_MULTIPLIERS = (1, 5, 10)

# Deterministic mode (only scenario-injected noise uses the RNG)
DETERMINISTIC = os.getenv('DETERMINISTIC', 'true').lower() == 'true'
RANDOM_SEED = int(os.getenv('RANDOM_SEED', '42'))

# Alarms
ALARM_HYSTERESIS = float(os.getenv('ALARM_HYSTERESIS', '0.05'))  # fraction of |threshold|
ALARM_HISTORY_SIZE = int(os.getenv('ALARM_HISTORY_SIZE', '500'))

# Trend history buffer (24h at 500ms intervals)
TREND_BUFFER_SIZE = int(os.getenv('TREND_BUFFER_SIZE', '172800'))

BACKWASH_DURATION_S = 600.0
FILTER_RUNTIME_LIMIT_H = 72.0

PUMP = 'pump'
VALVE = 'valve'
CHEMICAL_FEED = 'chemicalFeed'
FILTER_BED = 'filterBed'
BACKWASH_UNIT = 'backwashUnit'
SCREEN = 'screen'

# Equipment catalog: id -> static definition and initial state
EQUIPMENT = {
    # Intake
    'intakePump1': {'kind': PUMP, 'name': 'Intake Pump 1', 'tag': 'P-101', 'stage': 'intake',
                    'state': 'running', 'speed': 75.0, 'run_hours': 1240.0},
    'intakePump2': {'kind': PUMP, 'name': 'Intake Pump 2', 'tag': 'P-102', 'stage': 'intake',
                    'state': 'stopped', 'speed': 75.0, 'run_hours': 860.0},
    'intakeValve': {'kind': VALVE, 'name': 'Intake Valve', 'tag': 'XV-101', 'stage': 'intake',
                    'state': 'open'},
    'intakeScreen': {'kind': SCREEN, 'name': 'Intake Screen', 'tag': 'SCR-101', 'stage': 'intake',
                     'state': 'normal'},

    # Coagulation / flocculation
    'alumPump': {'kind': PUMP, 'name': 'Alum Feed Pump', 'tag': 'P-201', 'stage': 'coagulation',
                 'state': 'running', 'speed': 60.0, 'run_hours': 2100.0},
    'phAdjustPump': {'kind': PUMP, 'name': 'pH Adjust Pump', 'tag': 'P-202', 'stage': 'coagulation',
                     'state': 'running', 'speed': 40.0, 'run_hours': 1800.0},
    'rapidMixer': {'kind': PUMP, 'name': 'Rapid Mixer', 'tag': 'M-201', 'stage': 'coagulation',
                   'state': 'running', 'speed': 100.0, 'run_hours': 5200.0},
    'slowMixer': {'kind': PUMP, 'name': 'Flocculator', 'tag': 'M-202', 'stage': 'coagulation',
                  'state': 'running', 'speed': 100.0, 'run_hours': 5200.0},
    'alumFeed': {'kind': CHEMICAL_FEED, 'name': 'Alum Feed', 'tag': 'COG-FIC-001', 'stage': 'coagulation',
                 'state': 'active', 'label': 'Alum dose setpoint', 'unit': 'mg/L', 'setpoint': 18.0, 'min': 0.0, 'max': 80.0},
    'phAdjustFeed': {'kind': CHEMICAL_FEED, 'name': 'pH Adjust Feed', 'tag': 'COG-FIC-002', 'stage': 'coagulation',
                     'state': 'active', 'label': 'pH adjust dose setpoint', 'unit': 'mg/L', 'setpoint': 2.8, 'min': 0.0, 'max': 10.0},

    # Sedimentation / filtration
    'sludgePump': {'kind': PUMP, 'name': 'Sludge Pump', 'tag': 'P-301', 'stage': 'sedimentation',
                   'state': 'running', 'speed': 50.0, 'run_hours': 3400.0},
    'clarifierRake': {'kind': PUMP, 'name': 'Clarifier Rake', 'tag': 'M-301', 'stage': 'sedimentation',
                      'state': 'running', 'speed': 100.0, 'run_hours': 8900.0},
    'filter1': {'kind': FILTER_BED, 'name': 'Filter 1', 'tag': 'FLT-001', 'stage': 'sedimentation',
                'state': 'normal', 'run_time': 18.5},

    # Disinfection
    'chlorinePump': {'kind': PUMP, 'name': 'Chlorine Feed Pump', 'tag': 'P-401', 'stage': 'disinfection',
                     'state': 'running', 'speed': 65.0, 'run_hours': 4200.0},
    'uvSystem': {'kind': PUMP, 'name': 'UV System', 'tag': 'UV-401', 'stage': 'disinfection',
                 'state': 'running', 'speed': 100.0, 'run_hours': 6100.0},
    'chlorineFeed': {'kind': CHEMICAL_FEED, 'name': 'Chlorine Feed', 'tag': 'DIS-FIC-001', 'stage': 'disinfection',
                     'state': 'active', 'label': 'Chlorine dose', 'unit': 'mg/L', 'setpoint': 2.0, 'min': 0.0, 'max': 10.0},
}

# Instructor-adjustable process conditions: name -> (stage, field, label, unit, min, max, decimals)
PROCESS_CONDITIONS = {
    'source_turbidity': ('intake', 'source_turbidity_base', 'Source turbidity', 'NTU', 1.0, 300.0, 1),
    'source_temperature': ('intake', 'source_temperature', 'Source temperature', '°C', 0.0, 30.0, 1),
    'source_ph': ('intake', 'source_ph', 'Source pH', '', 5.0, 9.0, 1),
    'natural_inflow': ('intake', 'natural_inflow', 'Natural inflow', '', 0.01, 0.20, 2),
    'distribution_demand': ('disinfection', 'distribution_demand', 'Distribution demand', 'MGD', 0.0, 6.0, 1),
}

# Initial stage values (close to steady state at nominal setpoints)
INITIAL_STAGES = {
    'intake': {
        'raw_water_flow': 3.375,
        'raw_water_level': 8.5,
        'screen_diff_pressure': 1.8,
        'raw_turbidity': 15.0,
        'turbidity_phase': 0.0,
        'scenario_turbidity': None,
        'source_turbidity_base': 15.0,
        'source_temperature': 16.0,
        'source_ph': 7.2,
        'natural_inflow': 0.07,
        'screen_clean_episode': 0,
    },
    'coagulation': {
        'alum_dose_rate': 18.0,
        'alum_dose_setpoint': 18.0,
        'ph_adjust_dose_rate': 2.8,
        'ph_adjust_dose_setpoint': 2.8,
        'floc_basin_turbidity': 4.6,
        'rapid_mixer_speed': 120.0,
        'slow_mixer_speed': 45.0,
    },
    'sedimentation': {
        'clarifier_turbidity': 1.5,
        'sludge_blanket_level': 1.5,
        'filter_head_loss': 2.3,
        'filter_effluent_turbidity': 0.075,
        'filter_run_time': 18.5,
        'backwash_in_progress': False,
        'backwash_time_remaining': 0.0,
        'backwash_episode': 0,
    },
    'disinfection': {
        'chlorine_dose_rate': 2.0,
        'chlorine_dose_setpoint': 2.0,
        'chlorine_residual_plant': 1.7,
        'chlorine_residual_dist': 1.5,
        'finished_water_ph': 7.4,
        'clearwell_level': 14.0,
        'distribution_demand': 3.0,
    },
}

# Alarm thresholds per tag: level -> setpoint
ALARM_THRESHOLDS = {
    'INT-FIT-001': {'LL': 0.5, 'L': 1.0, 'H': 8.5, 'HH': 9.5},
    'INT-AIT-001': {'H': 200.0, 'HH': 500.0},
    'INT-PDT-001': {'H': 5.0, 'HH': 8.0},
    'COG-AIT-001': {'H': 50.0, 'HH': 100.0},
    'SED-AIT-001': {'H': 5.0, 'HH': 10.0},
    'SED-LIT-001': {'H': 4.0, 'HH': 6.0},
    'FLT-PDT-001': {'H': 7.0, 'HH': 9.0},
    'FLT-AIT-001': {'H': 0.3, 'HH': 0.5},
    'DIS-AIT-001': {'LL': 0.3, 'L': 0.5, 'H': 3.0, 'HH': 4.0},  # HH = EPA MRDL
    'DIS-AIT-002': {'LL': 0.2, 'L': 0.3, 'H': 2.0},
    'DIS-AIT-003': {'LL': 6.5, 'L': 6.8, 'H': 8.0, 'HH': 8.5},
}

# Static priority per alarm level
ALARM_PRIORITY = {
    'HH': 'CRITICAL',
    'LL': 'CRITICAL',
    'H': 'HIGH',
    'L': 'MEDIUM',
}

# Raise delay in simulated seconds per tag (default 0)
ALARM_DELAYS = {
    'INT-PDT-001': 5.0,
}
