"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Lead CRM - Models Package                                                   ║
║                                                                              ║
║  from leadcrm.models import LeadCreate, UserCreate, ...                      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from .auth import (
    UserLogin,
    UserCreate,
    UserUpdate,
    PasswordChange,
)

from .lead import (
    LeadStatus,
    RejectionReason,
    EmploymentType,
    LeadSource,
    LeadCreate,
    LeadUpdate,
    LeadDocument,
    EditHistoryEntry,
    VALID_LEAD_STATUSES,
    UPDATABLE_FIELDS,
)

from .report import (
    ReportDownloadRequest,
    EXPORT_FORMATS,
)

__all__ = [
    # Auth
    "UserLogin",
    "UserCreate",
    "UserUpdate",
    "PasswordChange",
    # Lead
    "LeadStatus",
    "RejectionReason",
    "EmploymentType",
    "LeadSource",
    "LeadCreate",
    "LeadUpdate",
    "LeadDocument",
    "EditHistoryEntry",
    "VALID_LEAD_STATUSES",
    "UPDATABLE_FIELDS",
    # Reports
    "ReportDownloadRequest",
    "EXPORT_FORMATS",
]
