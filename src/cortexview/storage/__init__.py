"""Storage module for cortexview.

Best-effort persistence of analyzed captures and the NDJSON audit log.

Public API:
    LocalStorage -- PNG files in a local directory
    AuditLog -- Daily NDJSON audit files
"""

from cortexview.storage.audit import AuditLog
from cortexview.storage.local import LocalStorage, sanitize_filename

__all__ = ["AuditLog", "LocalStorage", "sanitize_filename"]
