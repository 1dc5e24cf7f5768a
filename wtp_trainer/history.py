"""
Event History - newest-first ledger of operator actions and CSV export
"""

import io
import csv
import uuid
import logging
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, List, Dict

logger = logging.getLogger(__name__)

CATEGORIES = ('pump', 'valve', 'setpoint', 'backwash', 'scenario')

CSV_COLUMNS = ['time', 'tag', 'description', 'priority', 'value', 'status']


@dataclass(frozen=True)
class HistoryEvent:
    id: str
    timestamp: str
    category: str
    description: str
    equipment_id: Any
    tag: Any
    before: Any
    after: Any

    def to_dict(self):
        return asdict(self)


class EventHistoryLog:
    """Append-only operator action log (full clear only)"""

    def __init__(self):
        self._events = deque()

    def record(self, category: str, description: str, equipment_id=None, tag=None,
               before=None, after=None, timestamp: str = '') -> HistoryEvent:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown history category: {category}")
        event = HistoryEvent(
            id=str(uuid.uuid4()),
            timestamp=timestamp,
            category=category,
            description=description,
            equipment_id=equipment_id,
            tag=tag,
            before=before,
            after=after,
        )
        self._events.appendleft(event)
        return event

    def events(self) -> List[HistoryEvent]:
        """Newest first"""
        return list(self._events)

    def clear(self):
        count = len(self._events)
        self._events.clear()
        logger.info(f"History cleared ({count} events)")

    def __len__(self):
        return len(self._events)


def _write_csv(rows: List[Dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS, lineterminator='\n')
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buf.getvalue()


def events_to_csv(events) -> str:
    """Operator events: priority empty, value is the after-value, status is the category"""
    rows = []
    for event in events:
        rows.append({
            'time': event.timestamp,
            'tag': event.tag or '',
            'description': event.description,
            'priority': '',
            'value': '' if event.after is None else event.after,
            'status': event.category,
        })
    return _write_csv(rows)


def alarms_to_csv(records) -> str:
    """Alarm records: value is the triggering value, status is the record state"""
    rows = []
    for record in records:
        rows.append({
            'time': record['raised_at'],
            'tag': record['tag'],
            'description': record['description'],
            'priority': record['priority'],
            'value': record['value'],
            'status': record['state'],
        })
    return _write_csv(rows)
