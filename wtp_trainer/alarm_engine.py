"""
Alarm Engine - Handles alarms with delay, hysteresis, priority
"""

import copy
import math
import logging
from collections import deque
from enum import Enum
from typing import Dict, Any, List, Tuple

from wtp_trainer import config
from wtp_trainer.errors import UnknownEntity, OutOfRange

logger = logging.getLogger(__name__)


class AlarmSeverity(Enum):
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


LEVELS = ('LL', 'L', 'H', 'HH')
HIGH_LEVELS = ('H', 'HH')

LEVEL_TEXT = {
    'HH': 'High-High',
    'H': 'High',
    'L': 'Low',
    'LL': 'Low-Low',
}


class AlarmEngine:
    """Per-(tag, level) alarm lifecycle: active -> acknowledged -> cleared"""

    def __init__(self, tag_catalog, hysteresis=config.ALARM_HYSTERESIS,
                 history_size=config.ALARM_HISTORY_SIZE):
        self.tags = tag_catalog
        self.hysteresis = hysteresis
        self.history_size = history_size
        self.thresholds = copy.deepcopy(config.ALARM_THRESHOLDS)
        self.delays = dict(config.ALARM_DELAYS)

        self.open_alarms = {}            # (tag, level) -> record
        self.pending = {}                # (tag, level) -> elapsed at first crossing
        self.alarm_history = deque(maxlen=history_size)
        self._seq = 0

    def reset(self):
        """Reset alarm engine"""
        self.thresholds = copy.deepcopy(config.ALARM_THRESHOLDS)
        self.open_alarms = {}
        self.pending = {}
        self.alarm_history = deque(maxlen=self.history_size)
        self._seq = 0

    def _band(self, threshold: float) -> float:
        return self.hysteresis * abs(threshold)

    def _raise(self, tag: str, level: str, value: float, threshold: float, timestamp: str) -> Dict[str, Any]:
        self._seq += 1
        severity = AlarmSeverity[config.ALARM_PRIORITY[level]]
        desc = self.tags.describe(tag)
        record = {
            'id': f"{tag}-{level}-{self._seq}",
            'tag': tag,
            'level': level,
            'description': f"{desc['description']} {LEVEL_TEXT[level]}",
            'priority': severity.name,
            'severity': severity.value,
            'value': value,
            'threshold': threshold,
            'unit': desc['unit'],
            'state': 'active',
            'raised_at': timestamp,
            'acknowledged_at': None,
            'cleared_at': None,
        }
        self.open_alarms[(tag, level)] = record
        self.alarm_history.append(record)
        logger.info(f"Alarm raised: {record['id']} {record['description']} ({value:.3f} vs {threshold})")
        return record

    def _clear(self, key: Tuple[str, str], timestamp: str) -> Dict[str, Any]:
        record = self.open_alarms.pop(key)
        record['state'] = 'cleared'
        record['cleared_at'] = timestamp
        logger.info(f"Alarm cleared: {record['id']} {record['description']}")
        return record

    def evaluate(self, tag_values: Dict[str, Any], timestamp: str, elapsed: float):
        """Scan tags against thresholds; returns (raised, cleared) records"""
        raised, cleared = [], []

        for tag, levels in self.thresholds.items():
            value = tag_values.get(tag)
            if value is None or not math.isfinite(value):
                continue

            for level, threshold in levels.items():
                key = (tag, level)
                band = self._band(threshold)
                if level in HIGH_LEVELS:
                    crossed = value >= threshold
                    recovered = value < threshold - band
                else:
                    crossed = value <= threshold
                    recovered = value > threshold + band

                if key in self.open_alarms:
                    if recovered:
                        cleared.append(self._clear(key, timestamp))
                    continue

                if crossed:
                    started = self.pending.setdefault(key, elapsed)
                    if elapsed - started >= self.delays.get(tag, 0.0):
                        self.pending.pop(key, None)
                        raised.append(self._raise(tag, level, value, threshold, timestamp))
                else:
                    self.pending.pop(key, None)

        return raised, cleared

    def active_alarms(self) -> List[Dict[str, Any]]:
        """Open alarms (active or acknowledged), highest priority first"""
        records = [dict(r) for r in self.open_alarms.values()]
        records.sort(key=lambda r: (-r['severity'], r['raised_at']))
        return records

    def history(self) -> List[Dict[str, Any]]:
        """Retained records, newest first"""
        return [dict(r) for r in reversed(self.alarm_history)]

    def acknowledge(self, alarm_id: str, timestamp: str) -> Dict[str, Any]:
        """Acknowledge an open alarm; repeated acknowledgement is a no-op"""
        for record in self.open_alarms.values():
            if record['id'] == alarm_id:
                if record['state'] == 'active':
                    record['state'] = 'acknowledged'
                    record['acknowledged_at'] = timestamp
                    logger.info(f"Alarm acknowledged: {alarm_id}")
                return dict(record)

        for record in self.alarm_history:
            if record['id'] == alarm_id:
                raise UnknownEntity(f"Alarm {alarm_id} is already cleared")
        raise UnknownEntity(f"Unknown alarm: {alarm_id}")

    def get_thresholds(self) -> Dict[str, Dict[str, float]]:
        return copy.deepcopy(self.thresholds)

    def set_thresholds(self, tag: str, levels: Dict[str, Any], timestamp: str = ''):
        """Replace the threshold levels of one tag"""
        if tag not in self.tags:
            raise UnknownEntity(f"Unknown tag: {tag}")
        if not isinstance(levels, dict):
            raise OutOfRange("Threshold levels must be an object of level -> value")

        parsed = {}
        for level, value in levels.items():
            if level not in LEVELS:
                raise OutOfRange(f"Unknown alarm level: {level}")
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise OutOfRange(f"Threshold {tag} {level} must be a finite number")
            parsed[level] = float(value)

        ordered = [parsed[level] for level in LEVELS if level in parsed]
        if ordered != sorted(ordered):
            raise OutOfRange(f"Thresholds for {tag} must satisfy LL <= L <= H <= HH")

        # open records for removed levels no longer have a threshold to recover past
        for level in LEVELS:
            key = (tag, level)
            if level not in parsed and key in self.open_alarms:
                self._clear(key, timestamp)
            self.pending.pop(key, None)

        self.thresholds[tag] = parsed
        logger.info(f"Thresholds updated for {tag}: {parsed}")
        return dict(parsed)
