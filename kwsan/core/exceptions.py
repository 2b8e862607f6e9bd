"""
Base exceptions for kwsan.

This module defines the hierarchy of exceptions used by kwsan.
"""

class SanitizeError(Exception):
    """Base exception for kwsan errors"""
    pass


class PreconditionError(SanitizeError):
    """Exception raised when privilege or a required tool is missing"""
    pass


class InventoryError(SanitizeError):
    """Exception raised when block devices cannot be enumerated"""
    pass


class ProbeFailure(SanitizeError):
    """Exception raised when a capability query cannot be read"""
    pass


class ValidationError(SanitizeError):
    """Exception raised on an invalid menu choice or a confirmation mismatch"""
    pass


class ExecutionFailure(SanitizeError):
    """Exception raised when a sanitize command exits with a nonzero status"""

    def __init__(self, message: str, exit_status: int):
        super().__init__(message)
        self.exit_status = exit_status


class WorkflowError(SanitizeError):
    """Exception raised on an illegal workflow state transition"""
    pass


class CertificateError(SanitizeError):
    """Exception raised when a certificate cannot be written"""
    pass
