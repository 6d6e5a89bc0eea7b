"""Append-only, hash-chained audit log."""

from intelgraph.audit.log import GENESIS_HASH, AuditLog, AuditRecord

__all__ = ["GENESIS_HASH", "AuditLog", "AuditRecord"]
