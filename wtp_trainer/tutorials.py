"""
Tutorial Catalog - guided procedures and the predicates their steps wait for
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class OnUiEvent:
    """Step advances when the trainee triggers this UI element"""
    event_id: str


@dataclass(frozen=True)
class WaitFor:
    """Step advances once the named predicate holds on the live snapshot"""
    predicate_id: str


Rule = Optional[Union[OnUiEvent, WaitFor]]


@dataclass(frozen=True)
class TutorialStep:
    id: str
    instruction: str
    spotlight: str
    hint: str = ''
    rule: Rule = None


@dataclass(frozen=True)
class TutorialDefinition:
    id: str
    title: str
    description: str
    steps: Tuple[TutorialStep, ...]
    # (force path, value) pairs applied on start
    on_start: Tuple[Tuple[str, Any], ...] = ()

    def summary(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'step_count': len(self.steps),
        }


# Predicates over a ProcessState snapshot, by id
PREDICATES: Dict[str, Callable[[Any], bool]] = {
    'intake_pump1_running': lambda s: s.equipment['intakePump1']['state'] == 'running',
    'chlorine_pump_running': lambda s: s.equipment['chlorinePump']['state'] == 'running',
    'alarm_acknowledged': lambda s: any(a['state'] == 'acknowledged' for a in s.alarms),
    'alum_setpoint_above_20': lambda s: s.equipment['alumFeed']['setpoint'] > 20.0,
    'backwash_in_progress': lambda s: bool(s.stages['sedimentation']['backwash_in_progress']),
    'chlorine_setpoint_changed': lambda s: s.equipment['chlorineFeed']['setpoint'] != 2.0,
}


TUTORIALS = [
    TutorialDefinition(
        id='startup-procedure',
        title='Plant Startup Procedure',
        description='Learn to navigate the HMI and bring the plant online from a stopped state.',
        on_start=(('intakePump1.state', 'stopped'),),
        steps=(
            TutorialStep('step-1', 'Welcome to the Plant Startup tutorial. First, navigate to the '
                                   'Intake screen using the left sidebar.',
                         'nav-intake', 'Click "Intake" in the left navigation menu.'),
            TutorialStep('step-2', 'You are on the Intake screen. Click on Intake Pump 1 to open '
                                   'the control panel.',
                         'hmi-intakePump1', 'Click the pump symbol labeled "P-101" on the HMI.',
                         OnUiEvent('hmi-intakePump1')),
            TutorialStep('step-3', 'Click "Start" to start Intake Pump 1. Watch the flow meter '
                                   'reading increase.',
                         'ctrl-pump-start', 'Click the green "Start" button in the pump control panel.',
                         WaitFor('intake_pump1_running')),
            TutorialStep('step-4', 'Good! Pump 1 is running. Now navigate to the Coagulation screen.',
                         'nav-coagulation', 'Click "Coagulation" in the left navigation menu.'),
            TutorialStep('step-5', 'Verify that the alum pump and mixers are running. Check the '
                                   'alum dose setpoint is set to 18 mg/L.',
                         'hmi-alumDose', 'Look at the chemical feed display showing alum dose rate.',
                         OnUiEvent('hmi-alumDose')),
            TutorialStep('step-6', 'Navigate to the Disinfection screen and verify chlorine pump '
                                   'is running.',
                         'nav-disinfection', 'Click "Disinfection" in the left navigation menu.',
                         WaitFor('chlorine_pump_running')),
            TutorialStep('step-7', 'Check the chlorine residual. It should be between 0.5 and '
                                   '3.0 mg/L. Navigate to Trends to see the history.',
                         'nav-trends', 'Click "Trends" in the left navigation menu.'),
            TutorialStep('step-8', 'Excellent! Plant startup is complete. All systems are running '
                                   'normally. You can now monitor the process from the Overview screen.',
                         'nav-overview', 'Click "Overview" in the left navigation menu.'),
        ),
    ),
    TutorialDefinition(
        id='alarm-response',
        title='Responding to Process Alarms',
        description='Learn the proper procedure for acknowledging and responding to process alarms.',
        on_start=(('intake.source_turbidity_base', 250.0), ('intake.raw_turbidity', 250.0)),
        steps=(
            TutorialStep('step-1', 'An alarm is active! Look at the alarm banner at the top of the screen.',
                         'alarm-banner', 'Look at the red/amber banner at the top of the screen.'),
            TutorialStep('step-2', 'Navigate to the Alarms page to see all active alarms.',
                         'nav-alarms', 'Click "Alarms" in the left navigation menu.'),
            TutorialStep('step-3', 'Click the "Acknowledge" button on the active alarm to acknowledge it.',
                         'alarm-ack-button', 'Click the "ACK" button on the alarm row.',
                         WaitFor('alarm_acknowledged')),
            TutorialStep('step-4', 'Navigate to the Intake screen to investigate the cause of the alarm.',
                         'nav-intake', 'Click "Intake" in the left navigation menu.'),
            TutorialStep('step-5', 'Observe the raw turbidity reading. It is elevated. Navigate to Coagulation.',
                         'hmi-rawTurbidity', 'Look at the turbidity analyzer tag on the intake screen.'),
            TutorialStep('step-6', 'Increase the alum dose setpoint to compensate for high turbidity.',
                         'hmi-alumDose', 'Click the alum dose setpoint and increase it.',
                         WaitFor('alum_setpoint_above_20')),
            TutorialStep('step-7', 'Well done! Monitor the floc turbidity to confirm improvement.',
                         'hmi-flocTurbidity', 'Watch the floc turbidity value decrease over time.'),
        ),
    ),
    TutorialDefinition(
        id='backwash-procedure',
        title='Filter Backwash Procedure',
        description='Learn to recognize when a filter needs backwashing and how to initiate the procedure.',
        on_start=(('sedimentation.filter_head_loss', 8.2),),
        steps=(
            TutorialStep('step-1', 'Navigate to the Sedimentation/Filtration screen to check filter status.',
                         'nav-sedimentation', 'Click "Sedimentation" in the left navigation menu.'),
            TutorialStep('step-2', 'Observe the Filter Head Loss value. When it reaches 8 feet, '
                                   'backwash is required.',
                         'hmi-filterHeadLoss', 'Look at the filter head loss indicator (FLT-PDT-001).'),
            TutorialStep('step-3', 'Also check the Filter Run Time. Backwash is required every 72 '
                                   'hours regardless of head loss.',
                         'hmi-filterRunTime', 'Look at the filter run time display.'),
            TutorialStep('step-4', 'Click the Filter Bed symbol to open the filter control panel.',
                         'hmi-filterBed', 'Click on the filter bed symbol on the HMI.'),
            TutorialStep('step-5', 'Click "Start Backwash" to initiate the backwash sequence.',
                         'ctrl-backwash-start', 'Click the "Start Backwash" button in the filter control panel.',
                         WaitFor('backwash_in_progress')),
            TutorialStep('step-6', 'Backwash is in progress! Monitor the countdown timer. After 10 '
                                   'minutes, head loss will reset.',
                         'hmi-backwashTimer', 'Watch the backwash timer count down.'),
        ),
    ),
    TutorialDefinition(
        id='chlorination-adjustment',
        title='Chlorine Dose Adjustment',
        description='Learn to read chlorine residual trends and adjust the dose setpoint.',
        steps=(
            TutorialStep('step-1', 'Navigate to the Trends page to view the chlorine residual history.',
                         'nav-trends', 'Click "Trends" in the left navigation menu.'),
            TutorialStep('step-2', 'Select "DIS-AIT-001" (Plant Cl2 Residual) from the tag list. '
                                   'Observe the trend.',
                         'trend-tag-selector', 'Click on DIS-AIT-001 in the tag list.'),
            TutorialStep('step-3', 'Navigate to the Disinfection screen to adjust the chlorine dose setpoint.',
                         'nav-disinfection', 'Click "Disinfection" in the left navigation menu.'),
            TutorialStep('step-4', 'Click on the chlorine dose display to open the setpoint adjustment dialog.',
                         'hmi-chlorineDose', 'Click the chlorine dose rate display.',
                         WaitFor('chlorine_setpoint_changed')),
            TutorialStep('step-5', 'Good job! Monitor the residual over the next few minutes to '
                                   'verify the change.',
                         'hmi-chlorineResidual',
                         'Watch the chlorine residual value change in response to your adjustment.'),
        ),
    ),
]
