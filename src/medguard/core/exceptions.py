"""MedGuard custom exceptions."""

from __future__ import annotations

from typing import List, Optional


class MedGuardError(Exception):
    """Base class for all MedGuard errors."""


class MedGuardConfigError(MedGuardError):
    """Raised when configuration is missing or invalid."""

    def __init__(self, message: str, config_path: str = None, section: str = None):
        self.config_path = config_path
        self.section = section
        super().__init__(message)

    def __str__(self):
        msg = super().__str__()
        if self.config_path:
            msg += f" (config: {self.config_path})"
        if self.section:
            msg += f" (section: {self.section})"
        return msg


class ScanInputError(MedGuardError):
    """Raised when a scan request is missing required identifying fields.

    Nothing is created before this is raised.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)

    def __str__(self):
        msg = super().__str__()
        if self.errors:
            msg += ": " + "; ".join(self.errors)
        return msg


class ScanFailedError(MedGuardError):
    """Raised when the orchestrator cannot produce a summary for a scan."""

    def __init__(self, message: str, scan_id: str = None):
        self.scan_id = scan_id
        super().__init__(message)

    def __str__(self):
        msg = super().__str__()
        if self.scan_id:
            msg += f" (scan: {self.scan_id})"
        return msg
