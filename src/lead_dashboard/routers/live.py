"""WebSocket endpoint keeping a chart live while the client is connected."""

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from lead_dashboard.core.deps import DataSource, Notifier, Period
from lead_dashboard.schemas.chart import PeriodChangeMessage, SelectionResponse, ViewStateMessage
from lead_dashboard.views import ViewState, create_view

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/live", tags=["live"])


@router.websocket("/{name}")
async def live_chart(
    websocket: WebSocket,
    name: str,
    source: DataSource,
    notifier: Notifier,
    selection: Period,
    search: str = Query("", description="Broker name filter for listings"),
) -> None:
    """
    Stream the state of a chart view or the broker listing.

    The view is mounted for the lifetime of the socket: every fetch cycle
    pushes its state, and the client switches periods by sending
    ``{"period": ..., "start": ..., "end": ...}``.
    """

    async def push(state: ViewState) -> None:
        message = ViewStateMessage(
            loading=state.loading,
            error=state.error,
            chart=state.chart,
            details=state.details,
            selection=SelectionResponse.from_selection(state.selection),
        )
        try:
            await websocket.send_text(message.model_dump_json())
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("Live %s client went away before an update could be sent", name)

    view = create_view(
        name, source, notifier, selection=selection, listener=push, search=search
    )
    if view is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Chart not found")
        return

    await websocket.accept()
    logger.info("Live %s client connected", name)
    try:
        async with view:
            while True:
                text = await websocket.receive_text()
                try:
                    message = PeriodChangeMessage.model_validate_json(text)
                except ValidationError as e:
                    await websocket.send_json(
                        {"error": f"Invalid period message ({e.error_count()} error(s))"}
                    )
                    continue
                view.select_period(message.to_selection())
    except WebSocketDisconnect:
        logger.info("Live %s client disconnected", name)
