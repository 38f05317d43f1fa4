"""
Decision history: append-only, in-memory log of orchestrator outcomes.

Each record is also written as one JSON line to the ``agentflow.decisions``
logger so deployments can route it to a file or log shipper.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from .models import utcnow


decision_logger = logging.getLogger("agentflow.decisions")


class DecisionType(str, Enum):
    suggestion = "suggestion"
    alert = "alert"
    decision = "decision"


class DecisionStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    resolved = "resolved"


@dataclass(frozen=True)
class DecisionRecord:
    """Immutable history entry."""
    type: DecisionType
    summary: str
    agent: str
    status: DecisionStatus = DecisionStatus.pending
    details: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["status"] = self.status.value
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class DecisionHistory:
    """Append-only list of DecisionRecord."""

    def __init__(self):
        self._records: List[DecisionRecord] = []

    def append(self, record: DecisionRecord) -> DecisionRecord:
        self._records.append(record)
        decision_logger.info(record.to_json())
        return record

    def record(
        self,
        type: DecisionType,
        summary: str,
        agent: str,
        status: DecisionStatus = DecisionStatus.pending,
        details: Optional[Dict[str, Any]] = None,
    ) -> DecisionRecord:
        """Create and append a record in one step."""
        return self.append(DecisionRecord(
            type=type,
            summary=summary,
            agent=agent,
            status=status,
            details=details or {},
        ))

    def get(self, record_id: str) -> Optional[DecisionRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def all(self) -> Tuple[DecisionRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(tuple(self._records))
