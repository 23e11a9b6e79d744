import pytest
from pydantic import ValidationError

from halodash.catalog import (
    DASHBOARD_LAYOUTS,
    WIDGET_TEMPLATES,
    get_archetype,
    get_available_templates,
    resolve_layout,
)
from halodash.models import WidgetArchetype, WidgetKind


def test_catalog_has_every_archetype():
    assert len(WIDGET_TEMPLATES) == 14
    assert WIDGET_TEMPLATES["tickets_over_time"].width == 6
    assert WIDGET_TEMPLATES["response_time_avg"].kind is WidgetKind.COUNTER_FROM_QUERY


def test_every_layout_references_known_archetypes():
    assert set(DASHBOARD_LAYOUTS) == {
        "service_desk",
        "management",
        "sla_focused",
        "client_focused",
        "minimal",
    }
    for widget_ids in DASHBOARD_LAYOUTS.values():
        assert all(widget_id in WIDGET_TEMPLATES for widget_id in widget_ids)


def test_report_backed_archetypes_use_reserved_names():
    for archetype in WIDGET_TEMPLATES.values():
        if archetype.kind.requires_report:
            assert archetype.fallback_sql
            assert archetype.fallback_report_name == f"Dashboard - {archetype.name}"
        else:
            assert archetype.filter_id and archetype.filter_id > 0
            assert archetype.fallback_report_name is None


def test_registries_are_read_only():
    with pytest.raises(TypeError):
        WIDGET_TEMPLATES["new"] = WIDGET_TEMPLATES["open_tickets_counter"]  # type: ignore[index]
    with pytest.raises(ValidationError):
        WIDGET_TEMPLATES["open_tickets_counter"].width = 6


def test_lookup_helpers_return_none_for_unknown_keys():
    assert get_archetype("nope") is None
    assert resolve_layout("nope") is None
    assert resolve_layout("minimal")[0] == "open_tickets_counter"


def test_get_available_templates_shape():
    templates = get_available_templates()
    priority = templates["widget_templates"]["tickets_by_priority"]
    counter = templates["widget_templates"]["open_tickets_counter"]

    assert priority["type"] == "chart" and priority["requires_report"] is True
    assert counter["type"] == "counter" and counter["requires_report"] is False
    minimal = templates["dashboard_layouts"]["minimal"]
    assert minimal["widget_count"] == len(minimal["widgets"]) == 4


def test_archetype_binding_rules():
    with pytest.raises(ValidationError):
        WidgetArchetype(id="bad", name="Bad", kind=WidgetKind.COUNTER_FROM_FILTER)
    with pytest.raises(ValidationError):
        WidgetArchetype(id="bad", name="Bad", kind=WidgetKind.CHART_BAR, filter_id=3)
