"""
The DashboardEngine facade.

Wires the report cache, matcher, classifier, synthesizer, composer and
validator around one set of collaborators and exposes every public operation
as a method. One engine owns one report cache; create a separate engine per
caller that needs an isolated view of the report list.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .catalog import get_archetype, get_available_templates
from .classifier import ErrorClassifier
from .collaborators import DashboardStore, QueryExecutor, ReportStore
from .composer import DashboardComposer
from .config import EngineSettings, HaloConnection, HaloDashConfig
from .matcher import ReportMatcher
from .models import (
    BuildResult,
    ChartConfig,
    CreatedReportResult,
    DashboardValidationResult,
    NamedQuery,
    PlacedWidget,
    ValidationResult,
    WidgetArchetype,
)
from .report_cache import ReportCache
from .sql_templates import get_validated_sql, list_validated_templates
from .suggestions import suggest_widgets_for_description
from .synthesizer import ArtifactSynthesizer
from .validator import ValidationEngine

__all__ = ["DashboardEngine"]


class DashboardEngine:
    def __init__(
        self,
        executor: QueryExecutor,
        reports: ReportStore,
        dashboards: DashboardStore,
        settings: EngineSettings | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.cache = ReportCache(reports, count=self.settings.report_list_count)
        self.matcher = ReportMatcher(self.cache, self.settings)
        self.classifier = classifier or ErrorClassifier()
        self.synthesizer = ArtifactSynthesizer(reports, self.cache, self.matcher, self.settings)
        self.composer = DashboardComposer(self.synthesizer, dashboards, self.settings)
        self.validator = ValidationEngine(
            executor, reports, dashboards, self.cache, self.classifier, self.settings
        )

    @classmethod
    def for_connection(cls, connection: HaloConnection, settings: EngineSettings | None = None) -> "DashboardEngine":
        """Build an engine backed by the HaloPSA REST API."""
        from .halo_client import HaloClient, HaloDashboardStore, HaloQueryExecutor, HaloReportStore

        client = HaloClient(connection)
        return cls(
            HaloQueryExecutor(client),
            HaloReportStore(client),
            HaloDashboardStore(client),
            settings=settings,
        )

    @classmethod
    def from_config(cls, config: HaloDashConfig) -> "DashboardEngine":
        if config.connection is None:
            raise ValueError(
                "No HaloPSA connection configured. Set HALO_BASE_URL, HALO_CLIENT_ID and "
                "HALO_CLIENT_SECRET or add a 'connection' block to the config file."
            )
        return cls.for_connection(config.connection, config.engine)

    # Catalog

    def get_available_templates(self) -> dict[str, Any]:
        return get_available_templates()

    def suggest_widgets_for_description(self, description: str) -> list[str]:
        return suggest_widgets_for_description(description, limit=self.settings.suggestion_limit)

    def get_validated_sql(self, key: str) -> str | None:
        return get_validated_sql(key)

    def list_validated_templates(self) -> list[str]:
        return list_validated_templates()

    # Building

    def find_matching_report(self, keywords: Sequence[str]) -> NamedQuery | None:
        return self.matcher.find_matching_report(keywords)

    def get_or_create_report(self, archetype: WidgetArchetype | str) -> int | None:
        if isinstance(archetype, str):
            resolved = get_archetype(archetype)
            if resolved is None:
                return None
            archetype = resolved
        return self.synthesizer.get_or_create_report(archetype)

    def build_widget(
        self,
        archetype_id: str,
        x: int = 0,
        y: int = 0,
        title: str | None = None,
        color: str | None = None,
    ) -> PlacedWidget | None:
        return self.composer.build_widget(archetype_id, x, y, title=title, color=color)

    def build_dashboard(
        self,
        name: str,
        layout: str | Sequence[str] = "service_desk",
        description: str = "",
        is_shared: bool = False,
    ) -> BuildResult:
        return self.composer.build_dashboard(name, layout, description, is_shared=is_shared)

    def build_custom_dashboard(
        self,
        name: str,
        widget_ids: Sequence[str],
        description: str = "",
        is_shared: bool = False,
    ) -> BuildResult:
        return self.composer.build_custom_dashboard(name, widget_ids, description, is_shared=is_shared)

    # Validation

    def validate_report(self, report_id: int) -> ValidationResult:
        return self.validator.validate_report(report_id)

    def fix_report(self, report_id: int, new_sql: str) -> bool:
        return self.validator.fix_report(report_id, new_sql)

    def validate_and_fix_report(self, report_id: int, max_attempts: int | None = None) -> ValidationResult:
        return self.validator.validate_and_fix_report(report_id, max_attempts)

    def validate_dashboard(self, dashboard_id: int, auto_fix: bool = True) -> DashboardValidationResult:
        return self.validator.validate_dashboard(dashboard_id, auto_fix=auto_fix)

    def create_validated_report(
        self,
        name: str,
        sql: str,
        fallback_key: str | None = None,
        chart_config: ChartConfig | None = None,
    ) -> CreatedReportResult:
        return self.validator.create_validated_report(name, sql, fallback_key, chart_config)
