"""
Lead CRM - Report request models
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EXPORT_FORMATS = ["csv", "pdf"]


class ReportDownloadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")
    admin_id: Optional[str] = Field(None, alias="adminId")
    format: str = "csv"

    @field_validator("format")
    @classmethod
    def validate_format(cls, v):
        v = (v or "csv").lower().strip()
        if v not in EXPORT_FORMATS:
            raise ValueError(f"Invalid format: {v}. Valid: {EXPORT_FORMATS}")
        return v

    @field_validator("admin_id", "start_date", "end_date", mode="before")
    @classmethod
    def empty_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self
