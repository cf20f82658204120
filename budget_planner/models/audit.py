"""
Audit Models for Budget Planner

Every significant action in the planner is logged for audit purposes:
record mutations, undo/redo replays, sync lifecycle changes and storage
failures. The events go to the structured log only.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Records
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    BUDGET_ADDED = "budget_added"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"
    BUDGETS_CLEARED = "budgets_cleared"
    CATEGORY_REGISTERED = "category_registered"

    # History
    UNDO_PERFORMED = "undo_performed"
    REDO_PERFORMED = "redo_performed"
    REPLAY_FAILED = "replay_failed"

    # Sync
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    SNAPSHOT_APPLIED = "snapshot_applied"
    SNAPSHOT_DROPPED = "snapshot_dropped"
    LOCAL_STATE_LOADED = "local_state_loaded"
    EXTERNAL_CHANGE = "external_change"

    # Budgets
    BUDGET_EXCEEDED = "budget_exceeded"
    BUDGET_NEAR_LIMIT = "budget_near_limit"

    # Failures
    PERSISTENCE_FAILED = "persistence_failed"
    REMOTE_ERROR = "remote_error"
    VALIDATION_FAILED = "validation_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.
    """

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'budget')"
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_changed(AuditEventType.TRANSACTION_ADDED, "transaction", tx_id)
        event = AuditEventBuilder.signed_in(uid)
    """

    @staticmethod
    def record_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        mode: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{event_type.value.replace('_', ' ').capitalize()} ({mode})",
            details={"mode": mode, **(details or {})},
            is_user_action=True,
        )

    @staticmethod
    def history_replayed(
        direction: str,
        entry_kind: str,
        entity_id: str,
        mode: str,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.UNDO_PERFORMED
            if direction == "undo"
            else AuditEventType.REDO_PERFORMED
        )
        return AuditEvent(
            event_type=event_type,
            entity_id=entity_id,
            description=f"{direction.capitalize()} of {entry_kind}",
            details={"entry_kind": entry_kind, "mode": mode},
            is_user_action=True,
        )

    @staticmethod
    def replay_failed(
        direction: str,
        entry_kind: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPLAY_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"{direction.capitalize()} of {entry_kind} failed",
            details={"direction": direction, "entry_kind": entry_kind},
            error_message=error_message,
        )

    @staticmethod
    def signed_in(uid: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_IN,
            entity_type="identity",
            entity_id=uid,
            description="Remote sync started",
        )

    @staticmethod
    def signed_out(uid: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            entity_type="identity",
            entity_id=uid,
            description="Remote sync stopped, local mirror active",
        )

    @staticmethod
    def snapshot_applied(collection: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_APPLIED,
            severity=AuditSeverity.DEBUG,
            entity_type=collection,
            description=f"Remote snapshot replaced {collection}",
            details={"count": count},
        )

    @staticmethod
    def snapshot_dropped(collection: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_DROPPED,
            severity=AuditSeverity.DEBUG,
            entity_type=collection,
            description=f"Stale {collection} snapshot ignored",
        )

    @staticmethod
    def local_state_loaded(transactions: int, budgets: int, categories: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCAL_STATE_LOADED,
            description="Record store hydrated from local mirror",
            details={
                "transactions": transactions,
                "budgets": budgets,
                "categories": categories,
            },
        )

    @staticmethod
    def external_change(key: str, applied: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_CHANGE,
            description=f"Mirror key {key} changed in another context",
            details={"key": key, "applied": applied},
        )

    @staticmethod
    def budget_alert(
        exceeded: bool,
        alert_key: str,
        spent: str,
        limit: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.BUDGET_EXCEEDED
                if exceeded
                else AuditEventType.BUDGET_NEAR_LIMIT
            ),
            severity=AuditSeverity.WARNING if exceeded else AuditSeverity.INFO,
            entity_type="budget",
            description=f"Budget {'exceeded' if exceeded else 'near limit'}: {alert_key}",
            details={"alert_key": alert_key, "spent": spent, "limit": limit},
        )

    @staticmethod
    def persistence_failed(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.WARNING,
            description=f"Local mirror {operation} failed",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def remote_error(
        operation: str,
        collection: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type=collection,
            description=f"Remote {operation} failed",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(entity_type: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.INFO,
            entity_type=entity_type,
            description=f"{entity_type.capitalize()} input rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )
