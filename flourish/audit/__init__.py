"""Audit logging package."""

from flourish.audit.logger import AuditLogger, get_logger

__all__ = ["AuditLogger", "get_logger"]
