"""Broker detail endpoint listing each broker's leads."""

from fastapi import APIRouter, HTTPException, Query, status

from lead_dashboard.core.deps import DataSource, Notifier, Period
from lead_dashboard.schemas.lead import BrokerLeadsDetailResponse
from lead_dashboard.views import BrokerDetailsView

router = APIRouter(prefix="/api/brokers", tags=["brokers"])


@router.get("/details", response_model=BrokerLeadsDetailResponse)
async def get_broker_details(
    source: DataSource,
    notifier: Notifier,
    selection: Period,
    search: str = Query("", description="Case-insensitive broker name filter"),
) -> BrokerLeadsDetailResponse:
    """
    Group the leads of the selected period by responsible broker.

    Brokers are ordered by lead count, leads newest first. The same listing
    is available live at ``/api/live/broker-details``.
    """
    view = BrokerDetailsView(source, notifier, selection=selection, search=search)
    state = await view.load()
    if state.error is not None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=state.error,
        )
    if state.details is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Broker details could not be built",
        )
    return state.details
