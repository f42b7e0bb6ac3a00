"""
Report Service Errors

Exception taxonomy shared by the repository, manager and API layers.
"""

from typing import Iterable, List, Optional


class ReportSafeError(Exception):
    """Base class for all service errors"""


class ValidationError(ReportSafeError):
    """Input violated one or more rules.

    Carries every violated rule, not just the first one found.
    """

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class NotFoundError(ReportSafeError):
    """Unknown case ID or record"""

    def __init__(self, case_id: str, message: Optional[str] = None):
        self.case_id = case_id
        super().__init__(message or f"Report not found: {case_id}")


class InvalidStatusError(ReportSafeError):
    """Status value outside the status vocabulary"""

    def __init__(self, status: object):
        self.status = status
        super().__init__(f"Invalid status: {status!r}")


class MalformedCaseIdError(ReportSafeError):
    """Case ID does not match the case ID grammar"""

    def __init__(self, case_id: object):
        self.case_id = case_id
        super().__init__(f"Invalid case ID format: {case_id!r}")


class InvalidIncidentTypeError(ReportSafeError):
    """Incident type has no case ID code (strict generators only)"""

    def __init__(self, incident_type: object):
        self.incident_type = incident_type
        super().__init__(f"Unknown incident type: {incident_type!r}")


class AuthorizationError(ReportSafeError):
    """Requester does not own the report they are acting on"""


class StorageError(ReportSafeError):
    """Underlying persistence or file storage I/O failed"""
