"""Keyword-driven widget suggestions for free-text dashboard descriptions."""

from __future__ import annotations

from collections import Counter
from types import MappingProxyType
from typing import Mapping

DEFAULT_SUGGESTIONS: tuple[str, ...] = ("open_tickets_counter", "tickets_by_priority", "agent_workload")

KEYWORD_MAP: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "open": ("open_tickets_counter",),
        "unassigned": ("unassigned_counter",),
        "closed": ("closed_tickets_counter", "tickets_closed_by_agent"),
        "sla": ("sla_hold_counter", "sla_performance"),
        "priority": ("tickets_by_priority",),
        "status": ("tickets_by_status",),
        "client": ("tickets_by_client",),
        "customer": ("tickets_by_client", "top_callers"),
        "category": ("tickets_by_category",),
        "agent": ("agent_workload", "tickets_closed_by_agent"),
        "workload": ("agent_workload",),
        "technician": ("agent_workload", "tickets_closed_by_agent"),
        "trend": ("tickets_over_time",),
        "time": ("tickets_over_time", "response_time_avg"),
        "response": ("response_time_avg",),
        "caller": ("top_callers",),
        "performance": ("sla_performance", "agent_workload"),
        "overview": ("open_tickets_counter", "tickets_by_priority", "agent_workload"),
        "service": ("open_tickets_counter", "unassigned_counter", "agent_workload"),
        "management": ("tickets_by_priority", "sla_performance", "tickets_over_time"),
    }
)


def suggest_widgets_for_description(description: str, limit: int = 8) -> list[str]:
    """
    Rank widget template ids for a natural-language description.

    Every keyword found as a substring of the lower-cased text adds one point
    to each template it maps to. Templates are returned by descending score,
    ties in first-seen order, capped at ``limit``. With no hits the default
    trio is returned.
    """
    text = description.lower()
    scores: Counter[str] = Counter()
    for keyword, template_ids in KEYWORD_MAP.items():
        if keyword in text:
            scores.update(template_ids)

    if not scores:
        return list(DEFAULT_SUGGESTIONS)
    ranked = sorted(scores, key=lambda template_id: -scores[template_id])
    return ranked[:limit]
