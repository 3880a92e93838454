"""Schemas for lead endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class LeadResponse(BaseModel):
    """Lead information response."""

    id: int
    client_name: str | None
    client_phone: str | None
    development: str | None
    broker: str | None
    schedule_count: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class LeadListResponse(BaseModel):
    """Response schema for list of leads."""

    leads: list[LeadResponse]
    total_count: int


class LeadCreateRequest(BaseModel):
    """Request schema for registering a lead."""

    client_name: str | None = Field(None, max_length=255)
    client_phone: str | None = Field(None, max_length=32)
    development: str | None = Field(None, max_length=255)
    broker: str | None = Field(None, max_length=255)
    schedule_count: int | None = Field(None, ge=0)
    created_at: datetime | None = None

    @field_validator("client_name", "client_phone", "development", "broker")
    @classmethod
    def strip_blank(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class LeadUpdateRequest(BaseModel):
    """Request schema for updating a lead; omitted fields are left unchanged."""

    client_name: str | None = Field(None, max_length=255)
    client_phone: str | None = Field(None, max_length=32)
    development: str | None = Field(None, max_length=255)
    broker: str | None = Field(None, max_length=255)
    schedule_count: int | None = Field(None, ge=0)

    @field_validator("client_name", "client_phone", "development", "broker")
    @classmethod
    def strip_blank(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class BrokerLeadsDetail(BaseModel):
    """All leads handled by one broker."""

    broker: str
    total_leads: int
    leads: list[LeadResponse]


class BrokerLeadsDetailResponse(BaseModel):
    """Per-broker lead listing for the selected period."""

    brokers: list[BrokerLeadsDetail]
    total_leads: int
    days_in_range: int | None = None
