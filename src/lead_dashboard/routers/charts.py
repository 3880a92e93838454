"""Chart endpoints returning ready-to-draw labels and datasets."""

from fastapi import APIRouter, HTTPException, status

from lead_dashboard.core.deps import DataSource, Notifier, Period
from lead_dashboard.schemas.chart import ChartResponse, SelectionResponse
from lead_dashboard.views import CHART_VIEWS

router = APIRouter(prefix="/api/charts", tags=["charts"])


@router.get("")
async def list_charts() -> dict[str, list[str]]:
    """Names of the available charts."""
    return {"charts": sorted(CHART_VIEWS)}


@router.get("/{name}", response_model=ChartResponse)
async def get_chart(
    name: str,
    source: DataSource,
    notifier: Notifier,
    selection: Period,
) -> ChartResponse:
    """
    Compute a chart for the selected period.

    Rows are fetched for the resolved date range and aggregated in process.
    A failing backend query is reported with its own message.
    """
    view_class = CHART_VIEWS.get(name)
    if view_class is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Chart not found",
        )

    state = await view_class(source, notifier, selection=selection).load()
    if state.error is not None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=state.error,
        )
    if state.chart is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Chart could not be built",
        )

    return ChartResponse(
        chart=state.chart,
        selection=SelectionResponse.from_selection(selection),
    )
