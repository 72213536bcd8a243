"""
Audit module: best-effort, write-only record of the client lifecycle.
"""

from standbymesh.audit.sinks import (
    AuditSink,
    AuditEvent,
    InMemoryAuditSink,
    SQLiteAuditSink,
    PostgresAuditSink,
    create_audit_sink,
)
from standbymesh.audit.dispatcher import AuditDispatcher, AuditRecord

__all__ = [
    "AuditSink",
    "AuditEvent",
    "InMemoryAuditSink",
    "SQLiteAuditSink",
    "PostgresAuditSink",
    "create_audit_sink",
    "AuditDispatcher",
    "AuditRecord",
]
