"""
Pydantic models shared by the dashboard builder and the report validator.

Classes:
    WidgetKind: The widget kinds the platform renders, with their numeric type codes.
    WidgetArchetype: A named, immutable template describing one dashboard tile.
    NamedQuery: A persisted report whose SQL backs a chart or counter.
    PlacedWidget: A widget positioned on the dashboard grid.
    DashboardDefinition: A dashboard and its ordered widgets.
    ValidationResult: The outcome of running (and possibly repairing) a report.

The remaining models are result envelopes returned by the composite operations.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import ClassifiedQueryError, UnclassifiedQueryError


class WidgetKind(str, Enum):
    CHART_BAR = "chart-bar"
    CHART_PIE = "chart-pie"
    COUNTER_FROM_QUERY = "counter-from-query"
    LIST = "list"
    COUNTER_FROM_FILTER = "counter-from-filter"

    @property
    def halo_type(self) -> int:
        """Numeric widget type used by the HaloPSA dashboard API."""
        return _HALO_TYPES[self]

    @property
    def requires_report(self) -> bool:
        return self in (WidgetKind.CHART_BAR, WidgetKind.CHART_PIE, WidgetKind.COUNTER_FROM_QUERY)

    @classmethod
    def from_halo_type(cls, value: int) -> "WidgetKind":
        for kind, code in _HALO_TYPES.items():
            if code == value:
                return kind
        raise ValueError(f"Unknown HaloPSA widget type: {value}")


_HALO_TYPES: dict[WidgetKind, int] = {
    WidgetKind.CHART_BAR: 0,
    WidgetKind.CHART_PIE: 1,
    WidgetKind.COUNTER_FROM_QUERY: 2,
    WidgetKind.LIST: 6,
    WidgetKind.COUNTER_FROM_FILTER: 7,
}


class WidgetArchetype(BaseModel):
    """
    A dashboard tile template.

    Attributes:
        id (str): Catalog key, e.g. ``tickets_by_priority``.
        name (str): Display name used as the widget title.
        kind (WidgetKind): How the tile renders and what it binds to.
        description (str): Human description shown when listing templates.
        keywords (tuple[str, ...]): Terms used to find an existing report.
        fallback_sql (str | None): SQL used when a report has to be synthesized.
        fallback_report_name (str | None): Reserved name for the synthesized report.
        filter_id (int | None): Ticket filter for filter-backed kinds.
        ticket_area_id (int | None): Ticket area for filter-backed kinds.
        color (str): Initial colour of the tile.
        width (int): Width in grid units.
        height (int): Height in grid units.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: WidgetKind
    description: str = ""
    keywords: tuple[str, ...] = ()
    fallback_sql: str | None = None
    fallback_report_name: str | None = None
    filter_id: int | None = None
    ticket_area_id: int | None = None
    color: str = "#0f75b1"
    width: int = Field(default=4, ge=1, le=12)
    height: int = Field(default=2, ge=1)

    @model_validator(mode="after")
    def validate_binding(self) -> "WidgetArchetype":
        """Filter-backed kinds need a filter; report-backed kinds never carry one."""

        if self.kind.requires_report:
            if self.filter_id is not None:
                raise ValueError(f"Archetype '{self.id}' is report-backed and cannot set filter_id.")
        elif self.filter_id is None or self.filter_id <= 0:
            raise ValueError(f"Archetype '{self.id}' requires a filter_id > 0.")
        return self


class ChartConfig(BaseModel):
    """Chart metadata stored on a report (0=bar, 1=line, 2=pie, 3=doughnut)."""

    chart_type: int | None = None
    x_axis: str | None = None
    y_axis: str | None = None


class NamedQuery(BaseModel):
    """
    A persisted report.

    Attributes:
        id (int | None): Platform id, ``None`` until created.
        name (str): Report name; reserved names mark auto-synthesized reports.
        sql (str): Query text.
        description (str | None): Free-text description, scored by the matcher.
        category (str | None): Report category.
        is_shared (bool): Whether the report is visible to all agents.
        author_name (str | None): Name of the creating agent.
        chart_type, x_axis, y_axis, chart_title: Optional chart metadata.
    """

    id: int | None = None
    name: str
    sql: str = ""
    description: str | None = None
    category: str | None = None
    is_shared: bool = False
    author_name: str | None = None
    chart_type: int | None = None
    x_axis: str | None = None
    y_axis: str | None = None
    chart_title: str | None = None
    count: bool = True
    show_graph_values: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Report name cannot be empty.")
        return trimmed


class PlacedWidget(BaseModel):
    """A widget positioned on the dashboard grid, bound to a report or a filter."""

    i: str = "0"
    title: str
    kind: WidgetKind
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    w: int = Field(ge=1)
    h: int = Field(ge=1)
    color: str | None = None
    report_id: int | None = None
    filter_id: int | None = None
    ticket_area_id: int | None = None
    view_type: str | None = None
    counter_type: int | None = None
    count_format_type: int | None = None

    @model_validator(mode="after")
    def validate_binding(self) -> "PlacedWidget":
        """Exactly one of report_id / filter_id, matching the widget kind."""

        if self.kind.requires_report:
            if not self.report_id or self.report_id <= 0:
                raise ValueError(
                    f"Widget '{self.title}' of kind '{self.kind.value}' requires a report_id > 0."
                )
            if self.filter_id is not None:
                raise ValueError(f"Widget '{self.title}' cannot carry both a report and a filter.")
        else:
            if not self.filter_id or self.filter_id <= 0:
                raise ValueError(
                    f"Widget '{self.title}' of kind '{self.kind.value}' requires a filter_id > 0."
                )
            if self.report_id is not None:
                raise ValueError(f"Widget '{self.title}' cannot carry both a report and a filter.")
            if self.kind is WidgetKind.COUNTER_FROM_FILTER and (
                not self.ticket_area_id or self.ticket_area_id <= 0
            ):
                raise ValueError(f"Widget '{self.title}' requires a ticket_area_id > 0.")
        return self


class DashboardDefinition(BaseModel):
    id: int | None = None
    name: str
    description: str | None = None
    is_shared: bool = False
    widgets: list[PlacedWidget] = Field(default_factory=list)


class QueryResult(BaseModel):
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0


class Classification(BaseModel):
    """Outcome of matching an execution error against the failure signatures."""

    model_config = ConfigDict(frozen=True)

    matched: bool
    error_type: str = "unknown"
    description: str = "Unable to automatically fix this error"
    repaired_sql: str | None = None


class ValidationResult(BaseModel):
    """
    Outcome of validating one report.

    Attributes:
        report_id (int): The report that was validated.
        report_name (str): Its name, or ``Report <id>`` when it could not be fetched.
        valid (bool): Whether the last execution succeeded.
        error (str | None): The raw execution error, verbatim.
        error_type (str | None): Pattern of the matched failure signature, or ``unknown``.
        suggested_fix (str | None): Description of the matched signature.
        fixed_sql (str | None): Proposed repaired SQL, if any.
        executed (bool): Whether the last execution succeeded.
        row_count (int | None): Rows returned on success.
        attempts (int): Executions performed.
        repairs_applied (list[str]): Signature descriptions applied by the fix loop.
    """

    report_id: int
    report_name: str
    valid: bool
    error: str | None = None
    error_type: str | None = None
    suggested_fix: str | None = None
    fixed_sql: str | None = None
    executed: bool = False
    row_count: int | None = None
    attempts: int = 0
    repairs_applied: list[str] = Field(default_factory=list)

    @property
    def fixed(self) -> bool:
        return self.valid and bool(self.repairs_applied)

    def raise_for_status(self) -> None:
        """Raise the matching query error when the report is invalid."""

        if self.valid:
            return
        message = self.error or "Validation failed"
        if self.error_type and self.error_type != "unknown":
            raise ClassifiedQueryError(self.report_id, message, self.error_type)
        raise UnclassifiedQueryError(self.report_id, message)


class WidgetValidation(BaseModel):
    widget_title: str
    valid: bool
    report_id: int | None = None
    error: str | None = None
    fixed: bool = False


class DashboardValidationResult(BaseModel):
    valid: bool
    dashboard_id: int
    dashboard_name: str
    widget_results: list[WidgetValidation] = Field(default_factory=list)
    reports_validated: int = 0
    reports_failed: int = 0
    reports_fixed: int = 0


class CreatedReportResult(BaseModel):
    report: NamedQuery | None = None
    validated: bool = False
    used_fallback: bool = False


class ReportResolution(BaseModel):
    """How the backing report of a widget was obtained."""

    report_id: int
    report_name: str
    source: Literal["found", "created"]


class BuildResult(BaseModel):
    """
    Outcome of building a dashboard.

    ``status`` distinguishes full success, partial success (some widgets
    failed and are itemised in ``errors``) and full failure.
    """

    success: bool
    dashboard_id: int | None = None
    dashboard_name: str | None = None
    widgets_added: int = 0
    reports_found: list[str] = Field(default_factory=list)
    reports_created: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    message: str | None = None
    error: str | None = None
    available_layouts: list[str] | None = None
    available_widgets: list[str] | None = None

    @property
    def status(self) -> Literal["success", "partial", "failed"]:
        if not self.success:
            return "failed"
        return "partial" if self.errors else "success"
