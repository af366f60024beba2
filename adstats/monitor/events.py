"""
Blocking event types shared by the stores and the monitor.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class BlockingKind(Enum):
    """Classified kind of blocking signal."""
    RATE_LIMIT = "rate_limit"
    IP_BLOCKED = "ip_blocked"
    CAPTCHA = "captcha"
    USER_AGENT_BLOCKED = "user_agent_blocked"
    UNKNOWN = "unknown"


class Severity(Enum):
    """Ordinal blocking pressure level."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Action(Enum):
    """Remedial action recommended for the current severity."""
    CONTINUE = "continue"
    REDUCE_FREQUENCY = "reduce_frequency"
    PAUSE = "pause"
    CHANGE_STRATEGY = "change_strategy"


# Severity hint recorded when the reporter does not supply one
DEFAULT_SEVERITY = {
    BlockingKind.RATE_LIMIT: Severity.MEDIUM,
    BlockingKind.CAPTCHA: Severity.HIGH,
    BlockingKind.IP_BLOCKED: Severity.CRITICAL,
    BlockingKind.USER_AGENT_BLOCKED: Severity.MEDIUM,
    BlockingKind.UNKNOWN: Severity.LOW,
}


@dataclass(frozen=True)
class BlockingEvent:
    """A single recorded blocking signal. Never mutated after creation."""

    kind: BlockingKind
    severity: Severity
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    retry_after_seconds: Optional[float] = None
    user_agent: Optional[str] = None
    source_ip: Optional[str] = None
    subject_id: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["severity"] = self.severity.value
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BlockingEvent":
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            kind=BlockingKind(data["kind"]),
            severity=Severity(data["severity"]),
            timestamp=timestamp,
            retry_after_seconds=data.get("retry_after_seconds"),
            user_agent=data.get("user_agent"),
            source_ip=data.get("source_ip"),
            subject_id=data.get("subject_id"),
            message=data.get("message"),
        )


@dataclass
class BlockingStats:
    """Aggregate of the events inside an analysis window."""

    total: int = 0
    by_kind: Dict[str, int] = field(default_factory=dict)
    by_hour: Dict[int, int] = field(default_factory=dict)
    average_retry_after: float = 0.0
    last_event: Optional[datetime] = None
    last_hour_total: int = 0
    current_severity: Severity = Severity.LOW
    recommended_action: Action = Action.CONTINUE

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "by_kind": dict(self.by_kind),
            "by_hour": dict(self.by_hour),
            "average_retry_after": round(self.average_retry_after, 2),
            "last_event": self.last_event.isoformat() if self.last_event else None,
            "last_hour_total": self.last_hour_total,
            "current_severity": self.current_severity.value,
            "recommended_action": self.recommended_action.value,
        }
