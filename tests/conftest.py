"""Shared fixtures and in-memory collaborators for halodash tests."""

from __future__ import annotations

import re
from typing import Any

import pytest

from halodash.engine import DashboardEngine
from halodash.errors import ArtifactNotFound, PersistenceFailure
from halodash.models import DashboardDefinition, NamedQuery, PlacedWidget, QueryResult

PRIORITY_TABLE_RULE = (r"(FROM|JOIN)\s+Priority\b", "Invalid object name 'PRIORITY'.")
CLIENT_TABLE_RULE = (r"(FROM|JOIN)\s+Client\b", "Invalid object name 'Client'.")
STATUSTYPE_RULE = (r"statustype_id", "Invalid column name 'statustype_id'.")
DATEOCCURRED_RULE = (r"dateoccurred", "Invalid column name 'dateoccurred'.")


class InMemoryReportStore:
    def __init__(self, fail_on_create: set[str] | None = None) -> None:
        self.reports: dict[int, NamedQuery] = {}
        self.deleted: list[int] = []
        self.list_calls = 0
        self._next_id = 100
        self._fail_on_create = fail_on_create or set()

    def add(self, name: str, sql: str = "SELECT 1", **fields: Any) -> NamedQuery:
        self._next_id += 1
        report = NamedQuery(id=self._next_id, name=name, sql=sql, **fields)
        self.reports[report.id] = report
        return report

    def named(self, name: str) -> list[NamedQuery]:
        return [report for report in self.reports.values() if report.name == name]

    def list(self, count: int = 50, **filters: Any) -> list[NamedQuery]:
        self.list_calls += 1
        return [report.model_copy() for report in self.reports.values()][:count]

    def get(self, report_id: int) -> NamedQuery:
        if report_id not in self.reports:
            raise ArtifactNotFound("Report", report_id)
        return self.reports[report_id].model_copy()

    def create(self, report: NamedQuery) -> NamedQuery:
        if report.name in self._fail_on_create:
            raise PersistenceFailure(f"Failed to create report '{report.name}'")
        self._next_id += 1
        created = report.model_copy(update={"id": self._next_id})
        self.reports[created.id] = created
        return created.model_copy()

    def update(self, report_id: int, changes: dict[str, Any]) -> NamedQuery:
        current = self.get(report_id)
        updated = current.model_copy(update=changes)
        self.reports[report_id] = updated
        return updated.model_copy()

    def delete(self, report_id: int) -> None:
        if report_id not in self.reports:
            raise ArtifactNotFound("Report", report_id)
        del self.reports[report_id]
        self.deleted.append(report_id)


class FakeExecutor:
    """
    Runs reports from an :class:`InMemoryReportStore`.

    ``rules`` is an ordered list of ``(regex, error message)``; the first
    regex found in a report's SQL makes execution raise with that message.
    """

    def __init__(self, store: InMemoryReportStore, rules: list[tuple[str, str]] | None = None) -> None:
        self.store = store
        self.rules = list(rules or [])
        self.executions: list[int] = []

    def fetch(self, report_id: int) -> NamedQuery:
        return self.store.get(report_id)

    def execute(self, report_id: int, params: dict[str, Any] | None = None) -> QueryResult:
        self.executions.append(report_id)
        report = self.store.get(report_id)
        for pattern, message in self.rules:
            if re.search(pattern, report.sql, re.IGNORECASE):
                raise RuntimeError(message)
        return QueryResult(columns=["Value"], rows=[{"Value": 1}, {"Value": 2}], row_count=2)


class InMemoryDashboardStore:
    def __init__(self, fail_create: bool = False) -> None:
        self.dashboards: dict[int, DashboardDefinition] = {}
        self._next_id = 0
        self._fail_create = fail_create

    def create(self, dashboard: DashboardDefinition) -> DashboardDefinition:
        if self._fail_create:
            raise PersistenceFailure("Failed to save dashboard")
        self._next_id += 1
        created = dashboard.model_copy(update={"id": self._next_id}, deep=True)
        self.dashboards[created.id] = created
        return created

    def get(self, dashboard_id: int) -> DashboardDefinition:
        if dashboard_id not in self.dashboards:
            raise ArtifactNotFound("Dashboard", dashboard_id)
        return self.dashboards[dashboard_id].model_copy(deep=True)

    def update(self, dashboard_id: int, changes: dict[str, Any]) -> DashboardDefinition:
        updated = self.get(dashboard_id).model_copy(update=changes)
        self.dashboards[dashboard_id] = updated
        return updated

    def delete(self, dashboard_id: int) -> None:
        self.get(dashboard_id)
        del self.dashboards[dashboard_id]

    def add_widget(self, dashboard_id: int, widget: PlacedWidget) -> DashboardDefinition:
        widgets = self.get(dashboard_id).widgets + [widget]
        return self.update(dashboard_id, {"widgets": widgets})

    def update_widget(self, dashboard_id: int, widget_key: str, changes: dict[str, Any]) -> DashboardDefinition:
        widgets = [
            widget.model_copy(update=changes) if widget.i == widget_key else widget
            for widget in self.get(dashboard_id).widgets
        ]
        return self.update(dashboard_id, {"widgets": widgets})

    def delete_widget(self, dashboard_id: int, widget_key: str) -> DashboardDefinition:
        widgets = [widget for widget in self.get(dashboard_id).widgets if widget.i != widget_key]
        return self.update(dashboard_id, {"widgets": widgets})


@pytest.fixture
def report_store() -> InMemoryReportStore:
    return InMemoryReportStore()


@pytest.fixture
def dashboard_store() -> InMemoryDashboardStore:
    return InMemoryDashboardStore()


@pytest.fixture
def executor(report_store: InMemoryReportStore) -> FakeExecutor:
    return FakeExecutor(report_store)


@pytest.fixture
def engine(
    executor: FakeExecutor,
    report_store: InMemoryReportStore,
    dashboard_store: InMemoryDashboardStore,
) -> DashboardEngine:
    return DashboardEngine(executor, report_store, dashboard_store)
