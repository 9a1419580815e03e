"""Audit trail: event recording, sinks and queries."""

from filegate.audit.query import AuditQueryService
from filegate.audit.recorder import AuditAction, AuditEvent, AuditRecorder
from filegate.audit.sink import DatabaseAuditSink, MemoryAuditSink

__all__ = [
    "AuditAction",
    "AuditEvent",
    "AuditQueryService",
    "AuditRecorder",
    "DatabaseAuditSink",
    "MemoryAuditSink",
]
