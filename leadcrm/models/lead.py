"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Lead CRM - Lead model                                                       ║
║                                                                              ║
║  RULES:                                                                      ║
║  1. At most one lead per PAN / national-id per calendar month (system-wide)  ║
║  2. created_by is set at creation and never changes                          ║
║  3. Every update appends exactly one edit_history entry, create adds none    ║
║  4. Delete is a hard delete                                                  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import re
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, field_validator
from enum import Enum


class LeadStatus(str, Enum):
    NEW = "New"
    FOLLOW_UP = "Follow-up"
    APPROVED = "Approved"
    REJECTED = "Rejected"


VALID_LEAD_STATUSES = [s.value for s in LeadStatus]


class RejectionReason(str, Enum):
    CIBIL_ISSUE = "CIBIL Issue"
    LOW_INCOME = "Low Income"
    DOCUMENTATION_MISSING = "Documentation Missing"
    NOT_INTERESTED = "Not Interested"
    POOR_LEAD = "Poor Lead"
    OTHER = "Other"


class EmploymentType(str, Enum):
    SALARIED = "Salaried"
    SELF_EMPLOYED = "Self-Employed"


class LeadSource(str, Enum):
    MANUAL = "Manual"
    LINK = "Link"


MOBILE_RE = re.compile(r"^[0-9]{10}$")
PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]{1}$")

# Fields an update may touch. Everything else (id, created_by, source,
# timestamps, history, version) is owned by the service.
UPDATABLE_FIELDS = [
    "customer_name",
    "mobile_number",
    "pan",
    "national_id",
    "preferred_bank",
    "employment_type",
    "monthly_income",
    "status",
    "rejection_reason",
    "rejection_notes",
]


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _check_mobile(v):
    v = v.strip()
    if not MOBILE_RE.match(v):
        raise ValueError("Please add a valid 10-digit mobile number")
    return v


class LeadCreate(BaseModel):
    """
    Lead submitted by staff or through a referral link.
    PAN and national-id stay optional here: their presence and format are
    checked by the lead service so each failure gets its own message.
    """
    customer_name: str
    mobile_number: str
    pan: Optional[str] = None
    national_id: Optional[str] = None
    preferred_bank: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    monthly_income: Optional[float] = None
    status: LeadStatus = LeadStatus.NEW
    rejection_reason: Optional[RejectionReason] = None
    rejection_notes: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v):
        if not v.strip():
            raise ValueError("Please add a customer name")
        return v.strip()

    @field_validator("mobile_number")
    @classmethod
    def validate_mobile(cls, v):
        return _check_mobile(v)

    @field_validator("employment_type", "rejection_reason", "preferred_bank", mode="before")
    @classmethod
    def empty_is_none(cls, v):
        return _blank_to_none(v)

    @field_validator("rejection_notes")
    @classmethod
    def strip_notes(cls, v):
        return v.strip() if v else v


class LeadUpdate(BaseModel):
    """Partial update, only fields explicitly sent are applied"""
    customer_name: Optional[str] = None
    mobile_number: Optional[str] = None
    pan: Optional[str] = None
    national_id: Optional[str] = None
    preferred_bank: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    monthly_income: Optional[float] = None
    status: Optional[LeadStatus] = None
    rejection_reason: Optional[RejectionReason] = None
    rejection_notes: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Please add a customer name")
        return v.strip() if v else v

    @field_validator("mobile_number")
    @classmethod
    def validate_mobile(cls, v):
        return _check_mobile(v) if v is not None else v

    @field_validator("rejection_reason", "employment_type", "preferred_bank", mode="before")
    @classmethod
    def empty_is_none(cls, v):
        return _blank_to_none(v)

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually sent, enums flattened to their values"""
        return self.model_dump(include=set(UPDATABLE_FIELDS), exclude_unset=True, mode="json")


class EditHistoryEntry(BaseModel):
    editor_id: str
    timestamp: str
    previous_data: Dict[str, Any]
    new_data: Dict[str, Any]


class LeadDocument(BaseModel):
    """
    Full structure of a lead in the database
    """
    id: str
    customer_name: str
    mobile_number: str
    pan: str
    national_id: str
    preferred_bank: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    monthly_income: Optional[float] = None
    status: LeadStatus = LeadStatus.NEW
    rejection_reason: Optional[RejectionReason] = None
    rejection_notes: Optional[str] = None
    source: LeadSource = LeadSource.MANUAL
    created_by: str
    edit_history: List[EditHistoryEntry] = []
    version: int = 0
    created_at: str
    updated_at: str
