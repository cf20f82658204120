"""
Audit Logger

DESIGN DECISION: Every significant action in the planner is logged.
This provides:
1. Complete traceability of record mutations and replays
2. Debugging capability for the local/remote reconciliation
3. A record of storage failures that the user only saw as a toast

The audit logger never raises: a logging failure must not break the
mutation that triggered it.
"""

import logging
from typing import Optional

import structlog

from budget_planner.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structured logs through the standard library at the given level."""
    logging.basicConfig(format="%(message)s", level=level.upper())


def get_logger(name: Optional[str] = None):
    """Structured logger for a planner module."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Writes AuditEvents to the structured log at the level matching
    their severity. The most recent events are kept in memory so a
    host application can show an activity trail.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("budget_planner.audit")
        self._history_size = history_size
        self._recent: list[AuditEvent] = []

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest last."""
        return list(self._recent)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._recent.append(event)
        if len(self._recent) > self._history_size:
            del self._recent[0]

        log_dict = event.to_log_dict()
        try:
            if event.severity.value == "error":
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Logging must never take a mutation down with it
            self._logger.error("audit_log_failed", error=str(e))

    def log_record_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        mode: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.record_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            mode=mode,
            details=details,
        ))

    def log_history_replayed(
        self,
        direction: str,
        entry_kind: str,
        entity_id: str,
        mode: str,
    ) -> None:
        self.log(AuditEventBuilder.history_replayed(
            direction=direction,
            entry_kind=entry_kind,
            entity_id=entity_id,
            mode=mode,
        ))

    def log_replay_failed(self, direction: str, entry_kind: str, error_message: str) -> None:
        self.log(AuditEventBuilder.replay_failed(direction, entry_kind, error_message))

    def log_signed_in(self, uid: str) -> None:
        self.log(AuditEventBuilder.signed_in(uid))

    def log_signed_out(self, uid: Optional[str]) -> None:
        self.log(AuditEventBuilder.signed_out(uid))

    def log_snapshot_applied(self, collection: str, count: int) -> None:
        self.log(AuditEventBuilder.snapshot_applied(collection, count))

    def log_snapshot_dropped(self, collection: str) -> None:
        self.log(AuditEventBuilder.snapshot_dropped(collection))

    def log_local_state_loaded(self, transactions: int, budgets: int, categories: int) -> None:
        self.log(AuditEventBuilder.local_state_loaded(transactions, budgets, categories))

    def log_external_change(self, key: str, applied: bool) -> None:
        self.log(AuditEventBuilder.external_change(key, applied))

    def log_budget_alert(self, exceeded: bool, alert_key: str, spent: str, limit: str) -> None:
        self.log(AuditEventBuilder.budget_alert(exceeded, alert_key, spent, limit))

    def log_persistence_failed(self, operation: str, error_message: str) -> None:
        self.log(AuditEventBuilder.persistence_failed(operation, error_message))

    def log_remote_error(self, operation: str, collection: str, error_message: str) -> None:
        self.log(AuditEventBuilder.remote_error(operation, collection, error_message))

    def log_validation_failed(self, entity_type: str, issues: list[dict]) -> None:
        self.log(AuditEventBuilder.validation_failed(entity_type, issues))
