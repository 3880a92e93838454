"""Service for managing leads."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lead_dashboard.datasource import to_storage_time
from lead_dashboard.models.lead import Lead

# Sentinel for "leave this column alone" in updates
UNSET: Any = object()


async def get_lead_by_id(db: AsyncSession, lead_id: int) -> Lead | None:
    """Get a lead by its ID."""
    result = await db.execute(select(Lead).where(Lead.id == lead_id))
    return result.scalar_one_or_none()


async def get_leads(
    db: AsyncSession,
    *,
    broker: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Lead], int]:
    """Get leads, newest first, with the total count before paging."""
    query = select(Lead)
    count_query = select(func.count(Lead.id))
    if broker is not None:
        query = query.where(Lead.broker == broker)
        count_query = count_query.where(Lead.broker == broker)

    query = query.order_by(Lead.created_at.desc(), Lead.id.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    total = await db.scalar(count_query)
    return list(result.scalars().all()), total or 0


async def create_lead(
    db: AsyncSession,
    *,
    client_name: str | None = None,
    client_phone: str | None = None,
    development: str | None = None,
    broker: str | None = None,
    schedule_count: int | None = None,
    created_at: datetime | None = None,
) -> Lead:
    """Create a new lead; ``created_at`` defaults to now."""
    lead = Lead(
        client_name=client_name,
        client_phone=client_phone,
        development=development,
        broker=broker,
        schedule_count=schedule_count,
        created_at=to_storage_time(created_at or datetime.now(timezone.utc)),
    )
    db.add(lead)
    await db.flush()
    await db.refresh(lead)
    return lead


async def update_lead(
    db: AsyncSession,
    lead: Lead,
    *,
    client_name: str | None = UNSET,
    client_phone: str | None = UNSET,
    development: str | None = UNSET,
    broker: str | None = UNSET,
    schedule_count: int | None = UNSET,
) -> Lead:
    """Update the given columns of a lead."""
    changes = {
        "client_name": client_name,
        "client_phone": client_phone,
        "development": development,
        "broker": broker,
        "schedule_count": schedule_count,
    }
    for column, value in changes.items():
        if value is not UNSET:
            setattr(lead, column, value)

    await db.flush()
    await db.refresh(lead)
    return lead


async def delete_lead(db: AsyncSession, lead: Lead) -> None:
    """Delete a lead."""
    await db.delete(lead)
    await db.flush()
