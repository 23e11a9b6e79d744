from halodash.composer import pack_grid
from halodash.config import EngineSettings
from halodash.engine import DashboardEngine
from halodash.models import WidgetArchetype, WidgetKind

from conftest import FakeExecutor, InMemoryDashboardStore, InMemoryReportStore


def _tile(id: str, width: int, height: int = 3) -> WidgetArchetype:
    return WidgetArchetype(id=id, name=id, kind=WidgetKind.CHART_BAR, width=width, height=height)


def test_pack_grid_wraps_rows():
    tiles = [_tile("a", 4), _tile("b", 4), _tile("c", 4, height=2), _tile("d", 6)]
    positions = [(archetype.id, x, y) for archetype, x, y in pack_grid(tiles, 12)]

    assert positions == [("a", 0, 0), ("b", 4, 0), ("c", 8, 0), ("d", 0, 3)]


def test_pack_grid_uses_tallest_tile_of_previous_row():
    tiles = [_tile("a", 6, 2), _tile("b", 6, 5), _tile("c", 12, 1), _tile("d", 2)]
    positions = [(x, y) for _, x, y in pack_grid(tiles, 12)]

    assert positions == [(0, 0), (6, 0), (0, 5), (0, 6)]


def test_filter_counter_needs_no_report(engine, report_store):
    widget = engine.build_widget("open_tickets_counter")

    assert widget.filter_id == 1
    assert widget.ticket_area_id == 1
    assert widget.report_id is None
    assert widget.view_type == "all"
    assert report_store.reports == {}


def test_build_widget_unknown_template(engine):
    assert engine.build_widget("no_such_widget") is None


def test_build_widget_chart_binds_report(engine, report_store):
    widget = engine.build_widget("tickets_by_priority", x=4, y=2, title="Priorities")

    assert widget.title == "Priorities"
    assert (widget.x, widget.y, widget.w, widget.h) == (4, 2, 4, 3)
    assert report_store.reports[widget.report_id].name == "Dashboard - Tickets by Priority"


def test_build_dashboard_from_layout(engine, dashboard_store):
    result = engine.build_dashboard("Service Desk", "minimal")

    assert result.success and result.status == "success"
    assert result.widgets_added == 4
    assert len(result.reports_created) == 2
    assert result.reports_found == []
    assert result.message.startswith("Dashboard 'Service Desk' created with 4 widgets.")

    stored = dashboard_store.dashboards[result.dashboard_id]
    assert stored.description == "Auto-built dashboard with 4 widgets"
    assert [widget.i for widget in stored.widgets] == ["1", "2", "3", "4"]
    assert [(widget.x, widget.y) for widget in stored.widgets] == [(0, 0), (2, 0), (4, 0), (8, 0)]


def test_rebuilding_keeps_one_reserved_report(engine, report_store):
    engine.build_dashboard("First", ["tickets_by_priority"])
    engine.build_dashboard("Second", ["tickets_by_priority"])

    assert len(report_store.named("Dashboard - Tickets by Priority")) == 1


def test_existing_report_is_reported_as_found(engine, report_store):
    report_store.add("Tickets By Priority Report")
    result = engine.build_dashboard("Mixed", ["tickets_by_priority", "agent_workload"])

    assert result.reports_found == ["Tickets By Priority Report (for Tickets by Priority)"]
    assert result.reports_created == ["Dashboard - Agent Workload (for Agent Workload)"]


def test_unknown_layout(engine):
    result = engine.build_dashboard("Ops", "nope")

    assert not result.success
    assert result.error == "Unknown layout: nope"
    assert "service_desk" in result.available_layouts


def test_invalid_name(engine):
    result = engine.build_dashboard("   ", "minimal")
    assert result.status == "failed"
    assert result.error == "Name cannot be empty."


def test_unknown_ids_are_skipped_without_a_slot(engine, dashboard_store):
    result = engine.build_dashboard("Counters", ["open_tickets_counter", "bogus", "unassigned_counter"])

    assert result.status == "partial"
    assert result.errors == ["Unknown widget template: bogus"]
    widgets = dashboard_store.dashboards[result.dashboard_id].widgets
    assert [(widget.i, widget.x) for widget in widgets] == [("1", 0), ("3", 2)]


def test_failed_widget_does_not_abort_siblings():
    reports = InMemoryReportStore(fail_on_create={"Dashboard - Tickets by Status"})
    dashboards = InMemoryDashboardStore()
    engine = DashboardEngine(FakeExecutor(reports), reports, dashboards)

    result = engine.build_dashboard("Partial", ["tickets_by_status", "tickets_by_priority"])

    assert result.status == "partial"
    assert result.errors == ["Failed to build widget: tickets_by_status"]
    widget = dashboards.dashboards[result.dashboard_id].widgets[0]
    # the failed tile keeps its slot
    assert (widget.i, widget.x) == ("2", 4)


def test_no_widgets_is_a_failure():
    reports = InMemoryReportStore(fail_on_create={"Dashboard - Tickets by Status"})
    engine = DashboardEngine(FakeExecutor(reports), reports, InMemoryDashboardStore())

    result = engine.build_dashboard("Empty", ["tickets_by_status"])

    assert result.status == "failed"
    assert result.error == "No widgets could be built"


def test_dashboard_persistence_failure_is_fatal():
    reports = InMemoryReportStore()
    engine = DashboardEngine(FakeExecutor(reports), reports, InMemoryDashboardStore(fail_create=True))

    result = engine.build_dashboard("Ops", "minimal")

    assert result.success is False
    assert result.error == "Failed to save dashboard"


def test_custom_dashboard_ignores_unknown_ids(engine):
    result = engine.build_custom_dashboard("Custom", ["open_tickets_counter", "x", "y"])

    assert result.success
    assert result.widgets_added == 1
    assert result.errors == ["Invalid widget templates ignored: x, y"]


def test_custom_dashboard_without_valid_ids(engine):
    result = engine.build_custom_dashboard("Custom", ["x"])

    assert not result.success
    assert result.error == "No valid widget templates provided"
    assert "open_tickets_counter" in result.available_widgets


def test_wide_tiles_are_clamped_to_a_narrow_grid():
    reports = InMemoryReportStore()
    dashboards = InMemoryDashboardStore()
    engine = DashboardEngine(FakeExecutor(reports), reports, dashboards, settings=EngineSettings(grid_width=4))

    result = engine.build_dashboard("Narrow", ["tickets_over_time", "tickets_by_priority"])

    widgets = dashboards.dashboards[result.dashboard_id].widgets
    assert [(widget.x, widget.w) for widget in widgets] == [(0, 4), (0, 4)]
    assert all(widget.x + widget.w <= 4 for widget in widgets)
    assert engine.build_widget("tickets_over_time").w == 4
