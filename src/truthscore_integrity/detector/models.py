"""Data models for the detector module."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class AlertType(str, Enum):
    """Kind of manipulation an alert reports."""

    WASH_TRADING = "WASH_TRADING"
    SYBIL_CLUSTER = "SYBIL_CLUSTER"
    STATISTICAL_ANOMALY = "STATISTICAL_ANOMALY"
    COLLUSION = "COLLUSION"


class AlertSeverity(str, Enum):
    """How urgently an alert needs review."""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class RecommendedAction(str, Enum):
    """What the detector suggests an operator does."""

    INVESTIGATE = "INVESTIGATE"
    FLAG = "FLAG"
    SUPPRESS = "SUPPRESS"


class AlertStatus(str, Enum):
    """Review state of an alert."""

    PENDING = "pending"
    DISMISSED = "dismissed"
    CONFIRMED = "confirmed"

    def can_transition_to(self, target: AlertStatus) -> bool:
        """Only pending alerts can be reviewed, and only to a final state."""
        return self is AlertStatus.PENDING and target is not AlertStatus.PENDING


class InvalidAlertTransition(ValueError):
    """Raised when an alert is moved out of a final review state."""


@dataclass(frozen=True)
class AlertEvidence:
    """Structured evidence attached to an alert.

    Attributes:
        description: One-line summary for reviewers.
        data_points: Detector-specific measurements.
        epochs: Epochs the evidence refers to, if any.
    """

    description: str
    data_points: dict[str, Any] = field(default_factory=dict)
    epochs: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "description": self.description,
            "data_points": dict(self.data_points),
            "epochs": list(self.epochs),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlertEvidence:
        """Deserialize from dictionary."""
        return cls(
            description=str(data.get("description", "")),
            data_points=dict(data.get("data_points", {})),
            epochs=tuple(int(e) for e in data.get("epochs", [])),
        )


@dataclass(frozen=True)
class Alert:
    """A manipulation alert emitted by a detector.

    Alerts are created pending and only ever move to dismissed or
    confirmed through operator review.

    Attributes:
        type: Kind of manipulation detected.
        severity: Review urgency.
        wallets: Wallet addresses implicated.
        evidence: Structured evidence supporting the alert.
        recommended_action: Suggested operator action.
        status: Review state.
        id: Unique identifier for this alert.
        created_at: When the alert was created.
    """

    type: AlertType
    severity: AlertSeverity
    wallets: frozenset[str]
    evidence: AlertEvidence
    recommended_action: RecommendedAction
    status: AlertStatus = AlertStatus.PENDING
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_pending(self) -> bool:
        """Return True if the alert still awaits review."""
        return self.status is AlertStatus.PENDING

    def with_status(self, status: AlertStatus) -> Alert:
        """Return a copy of this alert in a new review state.

        Raises:
            InvalidAlertTransition: If the alert has already been reviewed.
        """
        if not self.status.can_transition_to(status):
            raise InvalidAlertTransition(
                f"Cannot move alert {self.id} from {self.status.value} to {status.value}"
            )
        return replace(self, status=status)

    def to_dict(self) -> dict[str, object]:
        """Serialize to dictionary for storage and notification."""
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "wallets": sorted(self.wallets),
            "evidence": self.evidence.to_dict(),
            "recommended_action": self.recommended_action.value,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Alert:
        """Deserialize from dictionary."""
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        elif created_at is None:
            created_at = datetime.now(UTC)

        return cls(
            id=str(data["id"]),
            type=AlertType(data["type"]),
            severity=AlertSeverity(data["severity"]),
            wallets=frozenset(data.get("wallets", [])),
            evidence=AlertEvidence.from_dict(data.get("evidence", {})),
            recommended_action=RecommendedAction(data["recommended_action"]),
            status=AlertStatus(data.get("status", AlertStatus.PENDING.value)),
            created_at=created_at,
        )


@dataclass(frozen=True)
class PatternScores:
    """Per-detector risk contributions for one wallet (0-100 each)."""

    wash_trading: float = 0.0
    sybil: float = 0.0
    anomaly: float = 0.0
    collusion: float = 0.0

    def to_dict(self) -> dict[str, float]:
        """Serialize to dictionary."""
        return {
            "wash_trading": self.wash_trading,
            "sybil": self.sybil,
            "anomaly": self.anomaly,
            "collusion": self.collusion,
        }


@dataclass(frozen=True)
class WalletAnalysis:
    """Combined anti-gaming assessment of a single wallet.

    Attributes:
        address: The wallet analyzed.
        risk_score: Weighted combination of pattern scores (0-100).
        alerts: Alerts raised against the wallet.
        patterns: Per-detector contributions.
        related_wallets: Other wallets implicated alongside this one.
        analyzed_at: When the analysis ran.
    """

    address: str
    risk_score: float
    alerts: tuple[Alert, ...]
    patterns: PatternScores
    related_wallets: frozenset[str] = frozenset()
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_high_risk(self) -> bool:
        """Return True if the risk score is 40 or more (any wash trading)."""
        return self.risk_score >= 40.0

    def to_dict(self) -> dict[str, object]:
        """Serialize to dictionary."""
        return {
            "address": self.address,
            "risk_score": self.risk_score,
            "alerts": [alert.to_dict() for alert in self.alerts],
            "patterns": self.patterns.to_dict(),
            "related_wallets": sorted(self.related_wallets),
            "analyzed_at": self.analyzed_at.isoformat(),
        }
