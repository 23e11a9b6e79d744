"""Static widget template and layout registries.

Both registries are built once at import time and exposed as read-only
mappings of frozen models.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from .models import WidgetArchetype, WidgetKind

__all__ = [
    "DASHBOARD_LAYOUTS",
    "WIDGET_TEMPLATES",
    "get_archetype",
    "get_available_templates",
    "resolve_layout",
]


def _counter(id: str, name: str, description: str, filter_id: int, color: str) -> WidgetArchetype:
    return WidgetArchetype(
        id=id,
        name=name,
        kind=WidgetKind.COUNTER_FROM_FILTER,
        description=description,
        filter_id=filter_id,
        ticket_area_id=1,
        color=color,
        width=2,
        height=2,
    )


_ARCHETYPES: tuple[WidgetArchetype, ...] = (
    _counter("open_tickets_counter", "Open Tickets", "Counter showing number of open tickets", 1, "#0f75b1"),
    _counter("unassigned_counter", "Unassigned Tickets", "Counter showing unassigned tickets", 1, "#e83c4a"),
    _counter("closed_tickets_counter", "Closed Today", "Counter showing tickets closed today", 3, "#a1c652"),
    _counter("sla_hold_counter", "SLA Hold", "Counter showing tickets on SLA hold", 2, "#fcdc00"),
    WidgetArchetype(
        id="tickets_by_priority",
        name="Tickets by Priority",
        kind=WidgetKind.CHART_PIE,
        description="Pie chart showing ticket distribution by priority",
        keywords=("priority", "tickets by priority", "ticket priority"),
        fallback_sql="""
SELECT
    COALESCE(p.name, 'No Priority') AS Priority,
    COUNT(*) AS Count
FROM Faults f
LEFT JOIN Priority p ON f.priority_id = p.id
WHERE f.statustype_id NOT IN (2, 3)
GROUP BY p.name
ORDER BY Count DESC""",
        fallback_report_name="Dashboard - Tickets by Priority",
        color="#3498db",
        width=4,
        height=3,
    ),
    WidgetArchetype(
        id="tickets_by_status",
        name="Tickets by Status",
        kind=WidgetKind.CHART_PIE,
        description="Pie chart showing ticket distribution by status",
        keywords=("status", "tickets by status", "ticket status"),
        fallback_sql="""
SELECT
    s.name AS Status,
    COUNT(*) AS Count
FROM Faults f
JOIN Status s ON f.status_id = s.id
WHERE f.dateoccurred >= DATEADD(day, -30, GETDATE())
GROUP BY s.name
ORDER BY Count DESC""",
        fallback_report_name="Dashboard - Tickets by Status",
        color="#9b59b6",
        width=4,
        height=3,
    ),
    WidgetArchetype(
        id="tickets_by_client",
        name="Tickets by Client",
        kind=WidgetKind.CHART_PIE,
        description="Pie chart showing tickets by client",
        keywords=("client", "tickets by client", "customer tickets", "top clients"),
        fallback_sql="""
SELECT TOP 10
    COALESCE(c.name, 'No Client') AS Client,
    COUNT(*) AS Count
FROM Faults f
LEFT JOIN Client c ON f.client_id = c.id
WHERE f.dateoccurred >= DATEADD(day, -30, GETDATE())
GROUP BY c.name
ORDER BY Count DESC""",
        fallback_report_name="Dashboard - Tickets by Client",
        color="#e74c3c",
        width=4,
        height=3,
    ),
    WidgetArchetype(
        id="tickets_by_category",
        name="Tickets by Category",
        kind=WidgetKind.CHART_PIE,
        description="Pie chart showing tickets by category",
        keywords=("category", "tickets by category", "ticket categories"),
        fallback_sql="""
SELECT
    COALESCE(cat.name, 'Uncategorized') AS Category,
    COUNT(*) AS Count
FROM Faults f
LEFT JOIN Category1 cat ON f.category_1 = cat.id
WHERE f.dateoccurred >= DATEADD(day, -30, GETDATE())
GROUP BY cat.name
ORDER BY Count DESC""",
        fallback_report_name="Dashboard - Tickets by Category",
        color="#2ecc71",
        width=4,
        height=3,
    ),
    WidgetArchetype(
        id="agent_workload",
        name="Agent Workload",
        kind=WidgetKind.CHART_BAR,
        description="Bar chart showing open tickets per agent",
        keywords=("agent", "workload", "agent workload", "tickets by agent", "technician"),
        fallback_sql="""
SELECT
    COALESCE(a.name, 'Unassigned') AS Agent,
    COUNT(*) AS OpenTickets
FROM Faults f
LEFT JOIN Agent a ON f.agent_id = a.id
WHERE f.statustype_id NOT IN (2, 3)
GROUP BY a.name
ORDER BY OpenTickets DESC""",
        fallback_report_name="Dashboard - Agent Workload",
        color="#f39c12",
        width=4,
        height=3,
    ),
    WidgetArchetype(
        id="tickets_closed_by_agent",
        name="Tickets Closed by Agent",
        kind=WidgetKind.CHART_BAR,
        description="Bar chart showing tickets closed by each agent",
        keywords=("closed", "agent closed", "closed by agent", "resolved by"),
        fallback_sql="""
SELECT TOP 10
    COALESCE(a.name, 'Unknown') AS Agent,
    COUNT(*) AS ClosedTickets
FROM Faults f
JOIN Agent a ON f.closedby_agent_id = a.id
WHERE f.dateclosed >= DATEADD(day, -30, GETDATE())
GROUP BY a.name
ORDER BY ClosedTickets DESC""",
        fallback_report_name="Dashboard - Tickets Closed by Agent",
        color="#1abc9c",
        width=4,
        height=3,
    ),
    WidgetArchetype(
        id="tickets_over_time",
        name="Tickets Over Time",
        kind=WidgetKind.CHART_BAR,
        description="Chart showing ticket volume over time",
        keywords=("over time", "daily tickets", "weekly tickets", "trend"),
        fallback_sql="""
SELECT
    CONVERT(varchar, f.dateoccurred, 23) AS Date,
    COUNT(*) AS TicketCount
FROM Faults f
WHERE f.dateoccurred >= DATEADD(day, -30, GETDATE())
GROUP BY CONVERT(varchar, f.dateoccurred, 23)
ORDER BY Date""",
        fallback_report_name="Dashboard - Tickets Over Time",
        color="#34495e",
        width=6,
        height=3,
    ),
    WidgetArchetype(
        id="sla_performance",
        name="SLA Performance",
        kind=WidgetKind.CHART_PIE,
        description="Pie chart showing SLA compliance",
        keywords=("sla", "sla performance", "sla breach", "response time"),
        fallback_sql="""
SELECT
    CASE
        WHEN f.slahold = 1 THEN 'On Hold'
        WHEN f.slabreach = 1 THEN 'Breached'
        ELSE 'Within SLA'
    END AS SLAStatus,
    COUNT(*) AS Count
FROM Faults f
WHERE f.statustype_id NOT IN (2, 3)
GROUP BY
    CASE
        WHEN f.slahold = 1 THEN 'On Hold'
        WHEN f.slabreach = 1 THEN 'Breached'
        ELSE 'Within SLA'
    END""",
        fallback_report_name="Dashboard - SLA Performance",
        color="#e67e22",
        width=4,
        height=3,
    ),
    WidgetArchetype(
        id="response_time_avg",
        name="Avg Response Time",
        kind=WidgetKind.COUNTER_FROM_QUERY,
        description="Average first response time",
        keywords=("response time", "first response", "average response"),
        fallback_sql="""
SELECT
    CAST(AVG(DATEDIFF(minute, f.dateoccurred, f.firstactiondate)) / 60.0 AS DECIMAL(10,1)) AS AvgResponseHours
FROM Faults f
WHERE f.firstactiondate IS NOT NULL
    AND f.dateoccurred >= DATEADD(day, -30, GETDATE())""",
        fallback_report_name="Dashboard - Avg Response Time",
        color="#16a085",
        width=2,
        height=2,
    ),
    WidgetArchetype(
        id="top_callers",
        name="Top Callers",
        kind=WidgetKind.CHART_PIE,
        description="Top users submitting tickets",
        keywords=("caller", "top callers", "users", "requesters"),
        fallback_sql="""
SELECT TOP 10
    COALESCE(u.name, 'Unknown') AS Caller,
    COUNT(*) AS TicketCount
FROM Faults f
LEFT JOIN Users u ON f.user_id = u.id
WHERE f.dateoccurred >= DATEADD(day, -30, GETDATE())
GROUP BY u.name
ORDER BY TicketCount DESC""",
        fallback_report_name="Dashboard - Top Callers",
        color="#8e44ad",
        width=4,
        height=3,
    ),
)

WIDGET_TEMPLATES: Mapping[str, WidgetArchetype] = MappingProxyType(
    {archetype.id: archetype for archetype in _ARCHETYPES}
)

DASHBOARD_LAYOUTS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "service_desk": (
            "open_tickets_counter",
            "unassigned_counter",
            "sla_hold_counter",
            "closed_tickets_counter",
            "tickets_by_priority",
            "agent_workload",
            "tickets_by_client",
        ),
        "management": (
            "open_tickets_counter",
            "closed_tickets_counter",
            "tickets_by_priority",
            "tickets_by_status",
            "agent_workload",
            "sla_performance",
            "tickets_over_time",
        ),
        "sla_focused": (
            "open_tickets_counter",
            "sla_hold_counter",
            "sla_performance",
            "response_time_avg",
            "tickets_by_priority",
            "agent_workload",
        ),
        "client_focused": (
            "open_tickets_counter",
            "tickets_by_client",
            "top_callers",
            "tickets_by_category",
            "tickets_by_priority",
        ),
        "minimal": (
            "open_tickets_counter",
            "unassigned_counter",
            "tickets_by_priority",
            "agent_workload",
        ),
    }
)


def get_archetype(archetype_id: str) -> WidgetArchetype | None:
    return WIDGET_TEMPLATES.get(archetype_id)


def resolve_layout(layout: str) -> tuple[str, ...] | None:
    """Return the archetype ids of a named layout preset, or ``None`` if unknown."""
    return DASHBOARD_LAYOUTS.get(layout)


def get_available_templates() -> dict[str, Any]:
    """Describe every widget template and layout preset for listing to a user."""

    widget_templates = {
        key: {
            "name": archetype.name,
            "description": archetype.description,
            "type": "chart" if archetype.kind.requires_report else "counter",
            "requires_report": archetype.kind.requires_report,
        }
        for key, archetype in WIDGET_TEMPLATES.items()
    }
    dashboard_layouts = {
        key: {"widgets": list(widgets), "widget_count": len(widgets)}
        for key, widgets in DASHBOARD_LAYOUTS.items()
    }
    return {"widget_templates": widget_templates, "dashboard_layouts": dashboard_layouts}
