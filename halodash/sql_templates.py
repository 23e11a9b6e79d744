"""Validated SQL template library.

These templates are known to run against the HaloPSA reporting schema and are
used as the last-resort fallback when a report cannot be repaired. They are
rendered from Jinja templates shipped in ``halodash/templates``.
"""

from __future__ import annotations

from functools import lru_cache

from jinja2 import Environment, PackageLoader, TemplateNotFound

VALIDATED_TEMPLATE_KEYS: tuple[str, ...] = (
    "tickets_by_priority",
    "tickets_by_status",
    "tickets_by_client",
    "tickets_by_category",
    "agent_workload",
    "tickets_closed_by_agent",
    "tickets_over_time",
    "sla_performance",
    "response_time_avg",
    "top_callers",
    # Alternative versions using Request_View
    "tickets_by_priority_view",
    "tickets_by_status_view",
    "tickets_by_client_view",
)

DEFAULT_LOOKBACK_DAYS = 30


@lru_cache(maxsize=1)
def _jinja_env() -> Environment:
    """Return a shared Jinja2 environment configured for SQL template rendering."""
    return Environment(
        loader=PackageLoader("halodash", "templates"),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=False,
    )


def render_validated_sql(key: str, days: int = DEFAULT_LOOKBACK_DAYS, limit: int | None = None) -> str:
    """Render one validated template.

    Raises:
        KeyError: If ``key`` is not a validated template.
        ValueError: If ``days`` or ``limit`` is not positive.
    """
    if key not in VALIDATED_TEMPLATE_KEYS:
        raise KeyError(key)
    if days <= 0:
        raise ValueError("days must be a positive number of days")
    context: dict[str, int] = {"days": days}
    if limit is not None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        context["limit"] = limit
    try:
        template = _jinja_env().get_template(f"{key}.sql.j2")
    except TemplateNotFound as exc:
        raise KeyError(key) from exc
    return template.render(**context).strip()


def get_validated_sql(key: str, days: int = DEFAULT_LOOKBACK_DAYS) -> str | None:
    """Return the validated SQL for ``key``, or ``None`` when there is no such template."""

    try:
        return render_validated_sql(key, days=days)
    except KeyError:
        return None


def list_validated_templates() -> list[str]:
    return list(VALIDATED_TEMPLATE_KEYS)
