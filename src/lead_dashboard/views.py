"""Chart view controllers.

A view owns the state of one chart: the period selection, whether a fetch is
outstanding, the last error and the last payload (a chart, or the broker
listing). Every trigger (mount, period change, change notification) runs the
same pipeline: resolve the period, query rows, aggregate, publish the new
state.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from datetime import tzinfo
from typing import Any, ClassVar

from lead_dashboard.aggregation import aggregate, count_by_field, group_records_by_field
from lead_dashboard.datasource import LeadDataSource, QueryError, RowFilter
from lead_dashboard.models import LEADS_TABLE
from lead_dashboard.notifications import Change, ChangeEvent, ChangeNotifier, Subscription
from lead_dashboard.periods import DateRange, PeriodSelection, resolve_period
from lead_dashboard.schemas.chart import ChartData, ChartType, Dataset
from lead_dashboard.schemas.lead import BrokerLeadsDetail, BrokerLeadsDetailResponse, LeadResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewState:
    selection: PeriodSelection
    loading: bool = False
    error: str | None = None
    chart: ChartData | None = None
    details: BrokerLeadsDetailResponse | None = None

    @property
    def days_in_range(self) -> int | None:
        return self.selection.days_in_range


StateListener = Callable[[ViewState], Awaitable[None] | None]


class ChartView:
    """Base controller; subclasses provide ``fetch`` and ``build``.

    ``search`` narrows the categories of views that list them and is ignored
    by the others.
    """

    name: ClassVar[str]
    title: ClassVar[str]
    chart_type: ClassVar[ChartType | None] = None
    dataset_label: ClassVar[str]
    x_axis_title: ClassVar[str | None] = None
    y_axis_title: ClassVar[str | None] = None
    index_axis: ClassVar[str] = "x"
    table: ClassVar[str] = LEADS_TABLE
    trigger: ClassVar[ChangeEvent] = ChangeEvent.ALL

    def __init__(
        self,
        source: LeadDataSource,
        change_notifier: ChangeNotifier,
        selection: PeriodSelection | None = None,
        listener: StateListener | None = None,
        tz: tzinfo | None = None,
        search: str = "",
    ) -> None:
        self.source = source
        self.state = ViewState(selection=selection or PeriodSelection())
        self.search = search
        self._notifier = change_notifier
        self._listener = listener
        self._tz = tz
        self._loop: asyncio.AbstractEventLoop | None = None
        self._subscription: Subscription | None = None
        self._task: asyncio.Task[None] | None = None
        self._request_id = 0
        self.mounted = False

    async def __aenter__(self) -> "ChartView":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.unmount()

    async def mount(self) -> None:
        """Subscribe to table changes and start the first fetch."""
        if self.mounted:
            return
        self.mounted = True
        self._loop = asyncio.get_running_loop()
        self._subscription = self._notifier.subscribe(self.table, self.trigger, self._on_change)
        self.refresh()

    async def unmount(self) -> None:
        """Release the subscription and drop any in-flight fetch."""
        self.mounted = False
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        # Anything still in flight is now stale
        self._request_id += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    def select_period(self, selection: PeriodSelection) -> "asyncio.Task[None]":
        self.state = replace(self.state, selection=selection)
        return self.refresh()

    def refresh(self) -> "asyncio.Task[None]":
        """Start a new fetch cycle, superseding the one in flight."""
        self._request_id += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(
            self._run(self._request_id), name=f"{self.name}-fetch-{self._request_id}"
        )
        return self._task

    async def settled(self) -> ViewState:
        """Wait until the most recent fetch cycle has finished."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self.state

    async def load(self, selection: PeriodSelection | None = None) -> ViewState:
        """Run one fetch cycle and return the resulting state."""
        if selection is not None:
            self.state = replace(self.state, selection=selection)
        self.refresh()
        return await self.settled()

    def _on_change(self, change: Change) -> None:
        logger.info(
            "%s %s received, refreshing %s", change.table, change.event.value, self.name
        )
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self._loop is None or running is self._loop:
            self.refresh()
        else:
            # Published from another thread or event loop
            self._loop.call_soon_threadsafe(self._refresh_if_mounted)

    def _refresh_if_mounted(self) -> None:
        if self.mounted:
            self.refresh()

    async def _run(self, request_id: int) -> None:
        selection = self.state.selection
        await self._apply(request_id, loading=True, error=None)
        try:
            rows = await self.fetch(resolve_period(selection, tz=self._tz))
            result = self.present(rows)
        except QueryError as e:
            logger.warning(f"Fetch for {self.name} failed: {e.message}")
            await self._apply(request_id, loading=False, error=e.message)
            return
        except Exception:
            logger.exception(f"Unexpected error while loading {self.name}")
            await self._apply(request_id, loading=False, error=f"Could not load {self.name}")
            return
        await self._apply(request_id, loading=False, error=None, **result)

    async def _apply(self, request_id: int, **changes: Any) -> bool:
        """Apply state changes of ``request_id`` unless a newer request started.

        A failing listener is logged; the state change still stands.
        """
        if request_id != self._request_id:
            logger.debug("Discarding stale result for %s (request %d)", self.name, request_id)
            return False
        self.state = replace(self.state, **changes)
        if self._listener is not None:
            try:
                result = self._listener(self.state)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"State listener of {self.name} failed")
        return True

    async def fetch(self, date_range: DateRange) -> list[dict[str, Any]]:
        raise NotImplementedError

    def build(self, rows: list[dict[str, Any]]) -> ChartData:
        raise NotImplementedError

    def present(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        """State fields produced by a successful fetch."""
        return {"chart": self.build(rows)}

    def _chart(self, labels: Sequence[str], values: Sequence[float]) -> ChartData:
        return ChartData(
            name=self.name,
            chart_type=self.chart_type,
            title=self.title,
            x_axis_title=self.x_axis_title,
            y_axis_title=self.y_axis_title,
            index_axis=self.index_axis,
            labels=list(labels),
            datasets=[Dataset(label=self.dataset_label, values=list(values))],
        )


class LeadsOverTimeView(ChartView):
    """Cumulative number of leads per day."""

    name = "leads-over-time"
    title = "Leads acumulados"
    chart_type = ChartType.LINE
    dataset_label = "Leads"
    x_axis_title = "Data"
    y_axis_title = "Quantidade de Leads"

    async def fetch(self, date_range: DateRange) -> list[dict[str, Any]]:
        return await self.source.query(
            self.table,
            ["id", "created_at"],
            RowFilter.for_range(date_range),
            order_by="created_at",
        )

    def build(self, rows: list[dict[str, Any]]) -> ChartData:
        series = aggregate(rows, tz=self._tz)
        return self._chart(series.labels, series.values)


class SchedulesOverTimeView(ChartView):
    """Cumulative scheduled visits per day."""

    name = "schedules-over-time"
    title = "Agendamentos acumulados"
    chart_type = ChartType.LINE
    dataset_label = "Agendamentos"
    x_axis_title = "Data"
    y_axis_title = "Quantidade de Agendamentos"

    async def fetch(self, date_range: DateRange) -> list[dict[str, Any]]:
        return await self.source.query(
            self.table,
            ["created_at", "schedule_count"],
            RowFilter.for_range(date_range, not_null=["schedule_count"]),
            order_by="created_at",
        )

    def build(self, rows: list[dict[str, Any]]) -> ChartData:
        series = aggregate(rows, lambda row: row.get("schedule_count") or 0, tz=self._tz)
        return self._chart(series.labels, series.values)


class LeadsByBrokerView(ChartView):
    """Leads per responsible broker, busiest first."""

    name = "leads-by-broker"
    title = "Leads por Corretor Responsável"
    chart_type = ChartType.BAR
    dataset_label = "Leads por Corretor"
    x_axis_title = "Quantidade de Leads"
    y_axis_title = "Corretor"
    index_axis = "y"
    trigger = ChangeEvent.INSERT

    async def fetch(self, date_range: DateRange) -> list[dict[str, Any]]:
        return await self.source.query(
            self.table,
            ["broker", "created_at"],
            RowFilter.for_range(date_range, not_null=["broker"]),
        )

    def build(self, rows: list[dict[str, Any]]) -> ChartData:
        counts = count_by_field(rows, "broker")
        return self._chart([label for label, _ in counts], [count for _, count in counts])


class LeadsByDevelopmentView(ChartView):
    """Leads per development (empreendimento)."""

    name = "leads-by-development"
    title = "Leads por Empreendimento"
    chart_type = ChartType.BAR
    dataset_label = "Leads"
    x_axis_title = "Empreendimentos"
    y_axis_title = "Quantidade"
    trigger = ChangeEvent.INSERT

    async def fetch(self, date_range: DateRange) -> list[dict[str, Any]]:
        return await self.source.query(
            self.table,
            ["development", "created_at"],
            RowFilter.for_range(date_range, not_null=["development"]),
        )

    def build(self, rows: list[dict[str, Any]]) -> ChartData:
        counts = count_by_field(rows, "development")
        return self._chart([label for label, _ in counts], [count for _, count in counts])


class BrokerDetailsView(ChartView):
    """Each broker's leads, busiest broker first and newest lead first.

    Unlike the charts it fills ``details`` instead of ``chart`` and refreshes
    on every kind of change, since edits and deletions alter the listing.
    """

    name = "broker-details"
    title = "Detalhes por Corretor"

    async def fetch(self, date_range: DateRange) -> list[dict[str, Any]]:
        return await self.source.query(
            self.table,
            row_filter=RowFilter.for_range(date_range, not_null=["broker"]),
            order_by="created_at",
            ascending=False,
        )

    def present(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        groups = group_records_by_field(rows, "broker")
        term = self.search.strip().lower()
        if term:
            groups = [group for group in groups if term in group.label.lower()]

        details = BrokerLeadsDetailResponse(
            brokers=[
                BrokerLeadsDetail(
                    broker=group.label,
                    total_leads=group.total,
                    leads=[LeadResponse.model_validate(row) for row in group.records],
                )
                for group in groups
            ],
            total_leads=sum(group.total for group in groups),
            days_in_range=self.state.selection.days_in_range,
        )
        return {"details": details}


VIEWS: dict[str, type[ChartView]] = {
    view.name: view
    for view in (
        LeadsOverTimeView,
        SchedulesOverTimeView,
        LeadsByBrokerView,
        LeadsByDevelopmentView,
        BrokerDetailsView,
    )
}

# Views that render as a chart, as opposed to listings
CHART_VIEWS: dict[str, type[ChartView]] = {
    name: view for name, view in VIEWS.items() if view.chart_type is not None
}


def create_view(
    name: str,
    source: LeadDataSource,
    change_notifier: ChangeNotifier,
    **kwargs: Any,
) -> ChartView | None:
    """Instantiate the view registered under ``name``, None if there is none."""
    view_class = VIEWS.get(name)
    if view_class is None:
        return None
    return view_class(source, change_notifier, **kwargs)
