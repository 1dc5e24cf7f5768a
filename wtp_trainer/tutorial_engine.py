"""
Tutorial Step Engine - drives the single active tutorial run
States: idle -> running -> complete -> idle
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from wtp_trainer import tutorials as catalog_mod
from wtp_trainer.tutorials import OnUiEvent, WaitFor
from wtp_trainer.errors import UnknownEntity, InvalidTransition, ConflictingActivation

logger = logging.getLogger(__name__)

IDLE = 'idle'
RUNNING = 'running'
COMPLETE = 'complete'


@dataclass
class ActiveTutorialRun:
    tutorial_id: str
    started_at: str
    step_index: int = 0
    ui_events: List[str] = field(default_factory=list)
    state: str = RUNNING


class TutorialStepEngine:
    """Advances on trainee UI events, explicit next/back, or live predicates"""

    def __init__(self, catalog=None, predicates=None, apply_effect=None):
        self.tutorial_defs = {t.id: t for t in (catalog or catalog_mod.TUTORIALS)}
        self.predicates = predicates if predicates is not None else catalog_mod.PREDICATES
        self.apply_effect = apply_effect
        self.run: Optional[ActiveTutorialRun] = None
        self.last_snapshot = None

    @property
    def state(self) -> str:
        return self.run.state if self.run else IDLE

    def _definition(self):
        return self.tutorial_defs[self.run.tutorial_id]

    def _step(self):
        return self._definition().steps[self.run.step_index]

    def _last_index(self) -> int:
        return len(self._definition().steps) - 1

    def _require_running(self):
        if self.run is None or self.run.state != RUNNING:
            raise InvalidTransition(f"No tutorial is running (state: {self.state})")

    def _holds(self, predicate_id: str, snapshot) -> bool:
        predicate = self.predicates.get(predicate_id)
        if predicate is None:
            logger.warning(f"Unknown tutorial predicate: {predicate_id}")
            return False
        try:
            return bool(predicate(snapshot))
        except (KeyError, TypeError, AttributeError, ArithmeticError) as e:
            logger.warning(f"Predicate {predicate_id} failed: {e}")
            return False

    def start(self, tutorial_id: str, started_at: str = ''):
        """Start a tutorial from idle at step 0"""
        if self.run is not None:
            raise ConflictingActivation(
                f"Tutorial {self.run.tutorial_id} is {self.run.state}; exit it first")
        tutorial = self.tutorial_defs.get(tutorial_id)
        if tutorial is None:
            raise UnknownEntity(f"Unknown tutorial: {tutorial_id}")

        if self.apply_effect is not None:
            for path, value in tutorial.on_start:
                self.apply_effect(path, value)

        self.run = ActiveTutorialRun(tutorial_id=tutorial_id, started_at=started_at)
        logger.info(f"Tutorial started: {tutorial_id}")
        self._auto_advance()
        return self.view()

    def ui_event(self, event_id: str):
        """Record a trainee UI event; advances an OnUiEvent step it matches"""
        if self.run is None or self.run.state != RUNNING:
            return self.view()
        self.run.ui_events.append(event_id)
        rule = self._step().rule
        if isinstance(rule, OnUiEvent) and rule.event_id == event_id \
                and self.run.step_index < self._last_index():
            self.run.step_index += 1
            self._auto_advance()
        return self.view()

    def _can_next(self) -> bool:
        if self.run is None or self.run.state != RUNNING:
            return False
        if self.run.step_index >= self._last_index():
            return False
        rule = self._step().rule
        if isinstance(rule, WaitFor):
            return False
        if isinstance(rule, OnUiEvent):
            return rule.event_id in self.run.ui_events
        return True

    def next(self):
        self._require_running()
        if self.run.step_index >= self._last_index():
            raise InvalidTransition("Already at the final step; finish the tutorial instead")
        rule = self._step().rule
        if isinstance(rule, WaitFor):
            raise InvalidTransition(f"Step is waiting for condition '{rule.predicate_id}'")
        if isinstance(rule, OnUiEvent) and rule.event_id not in self.run.ui_events:
            raise InvalidTransition(f"Step is waiting for UI event '{rule.event_id}'")
        self.run.step_index += 1
        self._auto_advance()
        return self.view()

    def back(self):
        self._require_running()
        if self.run.step_index > 0:
            self.run.step_index -= 1
        return self.view()

    def evaluate(self, snapshot) -> int:
        """Advance through satisfied WaitFor steps; returns steps advanced"""
        self.last_snapshot = snapshot
        if self.run is None or self.run.state != RUNNING or snapshot is None:
            return 0

        advanced = 0
        for _ in range(len(self._definition().steps)):
            rule = self._step().rule
            if not isinstance(rule, WaitFor):
                break
            if self.run.step_index >= self._last_index():
                break
            if not self._holds(rule.predicate_id, snapshot):
                break
            self.run.step_index += 1
            advanced += 1

        if advanced:
            logger.info(f"Tutorial {self.run.tutorial_id} auto-advanced to step {self.run.step_index + 1}")
        return advanced

    def _auto_advance(self):
        self.evaluate(self.last_snapshot)

    def finish(self):
        self._require_running()
        if self.run.step_index != self._last_index():
            raise InvalidTransition("Tutorial can only be finished at the final step")
        self.run.state = COMPLETE
        logger.info(f"Tutorial complete: {self.run.tutorial_id}")
        return self.view()

    def exit(self):
        if self.run is not None:
            logger.info(f"Tutorial exited: {self.run.tutorial_id}")
        self.run = None
        return self.view()

    def view(self) -> Dict[str, Any]:
        if self.run is None:
            return {'state': IDLE, 'tutorial_id': None}

        tutorial = self._definition()
        step = self._step()
        index = self.run.step_index
        running = self.run.state == RUNNING
        return {
            'state': self.run.state,
            'tutorial_id': tutorial.id,
            'title': tutorial.title,
            'step_index': index,
            'step_count': len(tutorial.steps),
            'step_id': step.id,
            'instruction': step.instruction,
            'hint': step.hint,
            'spotlight': step.spotlight,
            'wait_blocked': isinstance(step.rule, WaitFor),
            'awaiting_event': step.rule.event_id if isinstance(step.rule, OnUiEvent) else None,
            'can_back': running and index > 0,
            'can_next': self._can_next(),
            'can_finish': running and index == self._last_index(),
            'started_at': self.run.started_at,
        }

    def catalog(self):
        return [t.summary() for t in self.tutorial_defs.values()]
