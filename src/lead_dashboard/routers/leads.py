"""Lead maintenance router; every committed write is broadcast as a change."""

from fastapi import APIRouter, HTTPException, Query, status

from lead_dashboard.core.deps import DbSession, Notifier
from lead_dashboard.models import LEADS_TABLE
from lead_dashboard.notifications import Change, ChangeEvent
from lead_dashboard.schemas.lead import (
    LeadCreateRequest,
    LeadListResponse,
    LeadResponse,
    LeadUpdateRequest,
)
from lead_dashboard.services import leads as leads_service

router = APIRouter(prefix="/api/leads", tags=["leads"])


@router.get("", response_model=LeadListResponse)
async def list_leads(
    db: DbSession,
    broker: str | None = Query(None, min_length=1),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
) -> LeadListResponse:
    """List leads, newest first."""
    leads, total = await leads_service.get_leads(db, broker=broker, offset=offset, limit=limit)
    return LeadListResponse(
        leads=[LeadResponse.model_validate(lead) for lead in leads],
        total_count=total,
    )


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(db: DbSession, lead_id: int) -> LeadResponse:
    """Get a lead by ID."""
    lead = await leads_service.get_lead_by_id(db, lead_id)
    if lead is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lead not found",
        )
    return LeadResponse.model_validate(lead)


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    db: DbSession,
    notifier: Notifier,
    request: LeadCreateRequest,
) -> LeadResponse:
    """Register a new lead."""
    lead = await leads_service.create_lead(db, **request.model_dump())
    await db.commit()

    notifier.publish(Change(LEADS_TABLE, ChangeEvent.INSERT, new=lead.as_row()))
    return LeadResponse.model_validate(lead)


@router.put("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    db: DbSession,
    notifier: Notifier,
    lead_id: int,
    request: LeadUpdateRequest,
) -> LeadResponse:
    """Update a lead; only the fields present in the body change."""
    lead = await leads_service.get_lead_by_id(db, lead_id)
    if lead is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lead not found",
        )

    old_row = lead.as_row()
    lead = await leads_service.update_lead(db, lead, **request.model_dump(exclude_unset=True))
    await db.commit()

    notifier.publish(Change(LEADS_TABLE, ChangeEvent.UPDATE, new=lead.as_row(), old=old_row))
    return LeadResponse.model_validate(lead)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(db: DbSession, notifier: Notifier, lead_id: int) -> None:
    """Delete a lead."""
    lead = await leads_service.get_lead_by_id(db, lead_id)
    if lead is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lead not found",
        )

    old_row = lead.as_row()
    await leads_service.delete_lead(db, lead)
    await db.commit()

    notifier.publish(Change(LEADS_TABLE, ChangeEvent.DELETE, old=old_row))
