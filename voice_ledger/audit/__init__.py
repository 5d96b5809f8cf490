"""Audit logging for the voice pipeline."""

from voice_ledger.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
