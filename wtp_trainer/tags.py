"""
Tag Catalog - WTP process tags
Naming: <AREA>-<INSTRUMENT>-<NNN> (INT, COG, SED, FLT, DIS)
"""

import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)

# (tag, stage, field, type, unit, description)
TAG_DEFINITIONS = [
    # Intake
    ('INT-FIT-001', 'intake', 'raw_water_flow', 'analog', 'MGD', 'Raw Water Flow'),
    ('INT-AIT-001', 'intake', 'raw_turbidity', 'analog', 'NTU', 'Raw Turbidity'),
    ('INT-PDT-001', 'intake', 'screen_diff_pressure', 'analog', 'psi', 'Screen Diff Pressure'),
    ('INT-LIT-001', 'intake', 'raw_water_level', 'analog', 'ft', 'Raw Water Level'),

    # Coagulation
    ('COG-FIT-001', 'coagulation', 'alum_dose_rate', 'analog', 'mg/L', 'Alum Dose Rate'),
    ('COG-AIT-001', 'coagulation', 'floc_basin_turbidity', 'analog', 'NTU', 'Floc Basin Turbidity'),

    # Sedimentation / filtration
    ('SED-AIT-001', 'sedimentation', 'clarifier_turbidity', 'analog', 'NTU', 'Clarifier Turbidity'),
    ('SED-LIT-001', 'sedimentation', 'sludge_blanket_level', 'analog', 'ft', 'Sludge Blanket Level'),
    ('FLT-PDT-001', 'sedimentation', 'filter_head_loss', 'analog', 'ft', 'Filter Head Loss'),
    ('FLT-AIT-001', 'sedimentation', 'filter_effluent_turbidity', 'analog', 'NTU', 'Filter Effluent Turbidity'),
    ('FLT-RUN-001', 'sedimentation', 'filter_run_time', 'analog', 'h', 'Filter Run Time'),
    ('FLT-BW-001', 'sedimentation', 'backwash_in_progress', 'digital', '', 'Backwash In Progress'),

    # Disinfection
    ('DIS-FIT-001', 'disinfection', 'chlorine_dose_rate', 'analog', 'mg/L', 'Chlorine Dose Rate'),
    ('DIS-AIT-001', 'disinfection', 'chlorine_residual_plant', 'analog', 'mg/L', 'Plant Cl2 Residual'),
    ('DIS-AIT-002', 'disinfection', 'chlorine_residual_dist', 'analog', 'mg/L', 'Dist Cl2 Residual'),
    ('DIS-AIT-003', 'disinfection', 'finished_water_ph', 'analog', 'pH', 'Finished Water pH'),
    ('DIS-LIT-001', 'disinfection', 'clearwell_level', 'analog', 'ft', 'Clearwell Level'),
]


class TagCatalog:
    """Maps tags onto stage values"""

    def __init__(self):
        self.tags = {}
        for tag_name, stage, field, tag_type, unit, desc in TAG_DEFINITIONS:
            self.tags[tag_name] = {
                'stage': stage,
                'field': field,
                'type': tag_type,
                'unit': unit,
                'description': desc,
            }
        logger.info(f"Loaded {len(self.tags)} tags")

    def __contains__(self, tag_name: str) -> bool:
        return tag_name in self.tags

    def describe(self, tag_name: str) -> Dict[str, Any]:
        return self.tags[tag_name]

    def extract_values(self, stages: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        """Read current tag values out of per-stage records"""
        values = {}
        for tag_name, tag in self.tags.items():
            value = stages[tag['stage']][tag['field']]
            if tag['type'] == 'digital':
                value = 1 if value else 0
            values[tag_name] = value
        return values

    def listing(self):
        return [
            {'tag': name, 'unit': tag['unit'], 'description': tag['description'], 'type': tag['type']}
            for name, tag in self.tags.items()
        ]
