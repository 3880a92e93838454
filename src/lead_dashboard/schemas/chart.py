"""Chart payload schemas handed to the rendering layer."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from lead_dashboard.periods import PeriodSelection, PeriodType
from lead_dashboard.schemas.lead import BrokerLeadsDetailResponse


class ChartType(str, Enum):
    """Chart kinds the frontend knows how to draw."""

    BAR = "bar"
    LINE = "line"


class Dataset(BaseModel):
    """One series of values, aligned with the chart labels."""

    label: str
    values: list[float] = Field(default_factory=list)


class ChartData(BaseModel):
    """Ordered labels and datasets plus the display options of a chart."""

    name: str
    chart_type: ChartType
    title: str
    x_axis_title: str | None = None
    y_axis_title: str | None = None
    index_axis: Literal["x", "y"] = "x"
    labels: list[str] = Field(default_factory=list)
    datasets: list[Dataset] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.labels


class SelectionResponse(BaseModel):
    """Echo of the active period selection."""

    period: PeriodType
    start: str = ""
    end: str = ""
    days_in_range: int | None = None

    @classmethod
    def from_selection(cls, selection: PeriodSelection) -> "SelectionResponse":
        return cls(
            period=selection.period,
            start=selection.custom_start,
            end=selection.custom_end,
            days_in_range=selection.days_in_range,
        )


class ChartResponse(BaseModel):
    """Response for a one-off chart request."""

    chart: ChartData
    selection: SelectionResponse


class ViewStateMessage(BaseModel):
    """State pushed to live chart subscribers after every change."""

    loading: bool
    error: str | None = None
    chart: ChartData | None = None
    details: BrokerLeadsDetailResponse | None = None
    selection: SelectionResponse


class PeriodChangeMessage(BaseModel):
    """Client message switching the period of a live chart."""

    period: PeriodType = PeriodType.ALL_TIME
    start: str = ""
    end: str = ""

    def to_selection(self) -> PeriodSelection:
        return PeriodSelection(self.period, self.start, self.end)
