"""Interfaces of the external services the engine depends on.

The engine only needs query execution plus CRUD for reports and dashboards.
``halodash.halo_client`` implements all three against the HaloPSA REST API.
Implementations raise :class:`~halodash.errors.ArtifactNotFound` for a
missing id; any other exception from ``execute`` is treated as a query failure
and its message is classified.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import DashboardDefinition, NamedQuery, PlacedWidget, QueryResult


@runtime_checkable
class QueryExecutor(Protocol):
    def execute(self, report_id: int, params: dict[str, Any] | None = None) -> QueryResult: ...

    def fetch(self, report_id: int) -> NamedQuery: ...


@runtime_checkable
class ReportStore(Protocol):
    def list(self, count: int = 50, **filters: Any) -> list[NamedQuery]: ...

    def get(self, report_id: int) -> NamedQuery: ...

    def create(self, report: NamedQuery) -> NamedQuery: ...

    def update(self, report_id: int, changes: dict[str, Any]) -> NamedQuery: ...

    def delete(self, report_id: int) -> None: ...


@runtime_checkable
class DashboardStore(Protocol):
    def create(self, dashboard: DashboardDefinition) -> DashboardDefinition: ...

    def get(self, dashboard_id: int) -> DashboardDefinition: ...

    def update(self, dashboard_id: int, changes: dict[str, Any]) -> DashboardDefinition: ...

    def delete(self, dashboard_id: int) -> None: ...

    def add_widget(self, dashboard_id: int, widget: PlacedWidget) -> DashboardDefinition: ...

    def update_widget(
        self, dashboard_id: int, widget_key: str, changes: dict[str, Any]
    ) -> DashboardDefinition: ...

    def delete_widget(self, dashboard_id: int, widget_key: str) -> DashboardDefinition: ...
