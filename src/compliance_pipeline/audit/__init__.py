"""Append-only audit trail."""

from compliance_pipeline.audit.logger import AuditLogger
from compliance_pipeline.audit.models import AuditLogEntry

__all__ = ["AuditLogEntry", "AuditLogger"]
