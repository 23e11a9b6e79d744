"""Resolution and synthesis of the report backing a chart widget."""

from __future__ import annotations

from loguru import logger

from .collaborators import ReportStore
from .config import EngineSettings
from .errors import ArtifactNotFound, SynthesisFailure
from .matcher import ReportMatcher
from .models import NamedQuery, ReportResolution, WidgetArchetype
from .report_cache import ReportCache
from .sql_utils import normalize_sql


class ArtifactSynthesizer:
    """
    Finds or fabricates the report a widget archetype needs.

    Auto-synthesized reports carry the archetype's reserved name. They are
    disposable: every resolution deletes any existing copy so a fresh one is
    built from the current fallback SQL, unless a user-authored report
    matches the archetype's keywords, in which case that report is reused.
    """

    def __init__(
        self,
        store: ReportStore,
        cache: ReportCache,
        matcher: ReportMatcher,
        settings: EngineSettings | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._matcher = matcher
        self._settings = settings or EngineSettings()

    def get_or_create_report(self, archetype: WidgetArchetype) -> int | None:
        """Return the id of the report backing ``archetype``, or ``None`` on failure."""

        try:
            return self.resolve_report(archetype).report_id
        except SynthesisFailure as exc:
            logger.error(str(exc))
            return None

    def resolve_report(self, archetype: WidgetArchetype) -> ReportResolution:
        """
        Resolve the backing report and say whether it was found or created.

        Raises:
            SynthesisFailure: If no report could be reused or created.
        """
        try:
            if archetype.fallback_report_name:
                self._delete_stale_reports(archetype.fallback_report_name)
            existing = (
                self._matcher.find_matching_report(archetype.keywords) if archetype.keywords else None
            )
        except Exception as exc:
            raise SynthesisFailure(f"Could not list reports for {archetype.id}: {exc}") from exc

        if existing is not None and existing.id is not None:
            logger.info(f"Using existing report '{existing.name}' for {archetype.name}")
            return ReportResolution(report_id=existing.id, report_name=existing.name, source="found")

        report = self.create_report_for_widget(archetype)
        if report is None or report.id is None:
            raise SynthesisFailure(f"Could not get or create a report for {archetype.id}")
        return ReportResolution(report_id=report.id, report_name=report.name, source="created")

    def create_report_for_widget(self, archetype: WidgetArchetype) -> NamedQuery | None:
        """Create the reserved report for ``archetype`` from its fallback SQL."""

        if not archetype.fallback_sql or not archetype.fallback_report_name:
            logger.warning(f"No fallback SQL for template: {archetype.name}")
            return None

        draft = NamedQuery(
            name=archetype.fallback_report_name,
            sql=normalize_sql(archetype.fallback_sql),
            description=f"Auto-created for dashboard widget: {archetype.name}",
            category=self._settings.report_category,
            is_shared=True,
        )
        try:
            report = self._store.create(draft)
        except Exception as exc:
            logger.error(f"Failed to create report for {archetype.name}: {exc}")
            return None
        finally:
            self._cache.invalidate()

        logger.success(f"Created report '{report.name}' (ID: {report.id})")
        return report

    def _delete_stale_reports(self, reserved_name: str) -> None:
        """Delete every existing report named ``reserved_name`` (best-effort)."""

        target = reserved_name.strip().lower()
        stale = [
            report
            for report in self._cache.get_all()
            if report.id is not None and (report.name or "").strip().lower() == target
        ]
        if not stale:
            return
        for report in stale:
            logger.warning(f"Deleting stale auto-generated report '{report.name}' (ID: {report.id}) to recreate.")
            try:
                self._store.delete(report.id)
            except ArtifactNotFound:
                logger.debug(f"Report {report.id} was already gone.")
            except Exception as exc:
                logger.warning(f"Could not delete report {report.id}: {exc}. Proceeding with creation.")
        self._cache.invalidate()
