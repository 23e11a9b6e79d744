"""
Report and dashboard validation with bounded self-repair.

A report is validated by running it. When the run fails, the error message is
classified against the failure signatures in :mod:`halodash.classifier` and a
repaired SQL text may be proposed. :meth:`ValidationEngine.validate_and_fix_report`
applies one repair per round and re-runs the report, up to a fixed number of
executions; if the report is still broken at the end, its original SQL is put
back.
"""

from __future__ import annotations

from loguru import logger

from .classifier import ErrorClassifier
from .collaborators import DashboardStore, QueryExecutor, ReportStore
from .config import EngineSettings
from .errors import ArtifactNotFound
from .models import (
    ChartConfig,
    CreatedReportResult,
    DashboardValidationResult,
    NamedQuery,
    ValidationResult,
    WidgetValidation,
)
from .report_cache import ReportCache
from .sql_templates import get_validated_sql
from .sql_utils import normalize_sql, validate_artifact_name


class ValidationEngine:
    """Runs reports, classifies their failures and repairs them."""

    def __init__(
        self,
        executor: QueryExecutor,
        reports: ReportStore,
        dashboards: DashboardStore,
        cache: ReportCache,
        classifier: ErrorClassifier | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self._executor = executor
        self._reports = reports
        self._dashboards = dashboards
        self._cache = cache
        self._classifier = classifier or ErrorClassifier()
        self._settings = settings or EngineSettings()

    def validate_report(self, report_id: int) -> ValidationResult:
        """Run a report once and classify the failure, if any."""

        try:
            report = self._executor.fetch(report_id)
        except Exception as exc:
            return ValidationResult(
                report_id=report_id,
                report_name=f"Report {report_id}",
                valid=False,
                error=str(exc),
                executed=False,
            )

        try:
            result = self._executor.execute(report_id, {})
        except ArtifactNotFound as exc:
            return ValidationResult(
                report_id=report_id,
                report_name=report.name,
                valid=False,
                error=str(exc),
                executed=False,
                attempts=1,
            )
        except Exception as exc:
            error_message = str(exc)
            classification = self._classifier.analyze(report.sql or "", error_message)
            return ValidationResult(
                report_id=report_id,
                report_name=report.name,
                valid=False,
                error=error_message,
                error_type=classification.error_type,
                suggested_fix=classification.description,
                fixed_sql=classification.repaired_sql,
                executed=False,
                attempts=1,
            )

        return ValidationResult(
            report_id=report_id,
            report_name=report.name,
            valid=True,
            executed=True,
            row_count=result.row_count,
            attempts=1,
        )

    def fix_report(self, report_id: int, new_sql: str) -> bool:
        """Persist new SQL for a report. Returns ``False`` if the update failed."""

        try:
            self._reports.update(report_id, {"sql": new_sql})
        except Exception as exc:
            logger.error(f"Failed to fix report {report_id}: {exc}")
            return False
        finally:
            self._cache.invalidate()
        return True

    def validate_and_fix_report(self, report_id: int, max_attempts: int | None = None) -> ValidationResult:
        """
        Validate a report, applying at most one classified repair per round.

        Performs at most ``max_attempts`` executions and stops early when a
        failure has no proposed repair. A repair is only written when another
        execution is left to confirm it. If the report is still invalid after
        repairs were written, its original SQL is restored.
        """
        attempts_allowed = max_attempts if max_attempts is not None else self._settings.max_fix_attempts
        if attempts_allowed < 1:
            raise ValueError("max_attempts must be at least 1")

        original_sql: str | None = None
        repairs: list[str] = []
        attempt = 1
        result = self.validate_report(report_id)

        while True:
            result.attempts = attempt
            result.repairs_applied = list(repairs)
            if result.valid:
                if repairs:
                    logger.success(f"Report {report_id} repaired after {len(repairs)} fix(es).")
                return result
            if not result.fixed_sql or attempt == attempts_allowed:
                break

            if original_sql is None:
                original_sql = self._current_sql(report_id)
                if original_sql is None:
                    # nothing to restore if the repair fails to confirm
                    logger.warning(f"Not repairing report {report_id} without a copy of its SQL.")
                    break
            logger.info(f"Attempting to fix report {report_id} (attempt {attempt}): {result.suggested_fix}")
            if not self.fix_report(report_id, result.fixed_sql):
                logger.warning(f"Could not update report {report_id}")
                break
            repairs.append(result.suggested_fix or "repair")
            attempt += 1
            result = self.validate_report(report_id)

        if repairs and original_sql is not None:
            logger.warning(f"Report {report_id} is still failing; restoring its original SQL.")
            if self.fix_report(report_id, original_sql):
                result.fixed_sql = None
        return result

    def _current_sql(self, report_id: int) -> str | None:
        try:
            return self._reports.get(report_id).sql
        except Exception as exc:
            logger.warning(f"Could not snapshot SQL of report {report_id}: {exc}")
            return None

    def validate_dashboard(self, dashboard_id: int, auto_fix: bool = True) -> DashboardValidationResult:
        """
        Validate every report-backed widget of a dashboard, in stored order.

        Filter-backed widgets are reported valid without being checked.

        Raises:
            ArtifactNotFound: If the dashboard does not exist.
        """
        dashboard = self._dashboards.get(dashboard_id)
        widget_results: list[WidgetValidation] = []
        validated = failed = fixed = 0

        for position, widget in enumerate(dashboard.widgets, start=1):
            title = widget.title or f"Widget {widget.i or position}"
            if not widget.report_id or widget.report_id <= 0:
                widget_results.append(WidgetValidation(widget_title=title, valid=True))
                continue

            validated += 1
            logger.info(f"Validating widget '{title}' (report {widget.report_id})")
            result = (
                self.validate_and_fix_report(widget.report_id)
                if auto_fix
                else self.validate_report(widget.report_id)
            )
            if result.valid:
                fixed += int(result.fixed)
                widget_results.append(
                    WidgetValidation(
                        widget_title=title, valid=True, report_id=widget.report_id, fixed=result.fixed
                    )
                )
            else:
                failed += 1
                widget_results.append(
                    WidgetValidation(
                        widget_title=title, valid=False, report_id=widget.report_id, error=result.error
                    )
                )

        outcome = DashboardValidationResult(
            valid=failed == 0,
            dashboard_id=dashboard_id,
            dashboard_name=dashboard.name,
            widget_results=widget_results,
            reports_validated=validated,
            reports_failed=failed,
            reports_fixed=fixed,
        )
        if outcome.valid:
            logger.success(
                f"Dashboard '{dashboard.name}' validated: {validated} reports checked, {fixed} fixed."
            )
        else:
            logger.warning(f"Dashboard '{dashboard.name}' has {failed} failing report(s).")
        return outcome

    def create_validated_report(
        self,
        name: str,
        sql: str,
        fallback_key: str | None = None,
        chart_config: ChartConfig | None = None,
    ) -> CreatedReportResult:
        """
        Create a report and keep it only if it runs.

        The provided SQL gets one repair round. If it still fails, the report is
        deleted and the same procedure is retried with the validated template
        named by ``fallback_key``.
        """
        try:
            name = validate_artifact_name(name)
        except ValueError as exc:
            logger.error(f"Could not create report: {exc}")
            return CreatedReportResult(report=None, validated=False, used_fallback=False)

        report = self._create_and_verify(name, sql, "Auto-created for dashboard widget", chart_config)
        if report is not None:
            return CreatedReportResult(report=report, validated=True, used_fallback=False)

        if fallback_key:
            fallback_sql = get_validated_sql(fallback_key)
            if fallback_sql is None:
                logger.warning(f"Unknown validated template '{fallback_key}'; no fallback available.")
            else:
                report = self._create_and_verify(
                    name,
                    fallback_sql,
                    "Auto-created for dashboard widget (using validated template)",
                    chart_config,
                )
                if report is not None:
                    logger.info(f"Used validated fallback template for {name}")
                    return CreatedReportResult(report=report, validated=True, used_fallback=True)

        logger.error(f"Could not create a valid report '{name}'.")
        return CreatedReportResult(report=None, validated=False, used_fallback=False)

    def _create_and_verify(
        self,
        name: str,
        sql: str,
        description: str,
        chart_config: ChartConfig | None,
    ) -> NamedQuery | None:
        draft = NamedQuery(
            name=name,
            sql=normalize_sql(sql),
            description=description,
            category=self._settings.report_category,
            is_shared=True,
        )
        if chart_config is not None and chart_config.chart_type is not None:
            draft.chart_type = chart_config.chart_type
            draft.x_axis = chart_config.x_axis
            draft.y_axis = chart_config.y_axis
            draft.chart_title = name
            # the SQL already aggregates
            draft.count = False
            draft.show_graph_values = True

        try:
            report = self._reports.create(draft)
        except Exception as exc:
            logger.warning(f"Could not create report '{name}': {exc}")
            return None
        finally:
            self._cache.invalidate()
        if report.id is None:
            logger.warning(f"Report '{name}' was created without an id.")
            return None

        validation = self.validate_report(report.id)
        if validation.valid:
            return report

        if validation.fixed_sql and self.fix_report(report.id, validation.fixed_sql):
            if self.validate_report(report.id).valid:
                report.sql = validation.fixed_sql
                return report

        logger.warning(f"Report '{name}' failed validation: {validation.error}. Deleting it.")
        try:
            self._reports.delete(report.id)
        except Exception as exc:
            logger.warning(f"Could not delete broken report {report.id}: {exc}")
        finally:
            self._cache.invalidate()
        return None
