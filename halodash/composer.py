"""Grid packing and dashboard assembly from widget archetypes."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from .catalog import DASHBOARD_LAYOUTS, WIDGET_TEMPLATES, get_archetype, resolve_layout
from .collaborators import DashboardStore
from .config import EngineSettings
from .errors import SynthesisFailure
from .models import (
    BuildResult,
    DashboardDefinition,
    PlacedWidget,
    ReportResolution,
    WidgetArchetype,
)
from .sql_utils import validate_artifact_name
from .synthesizer import ArtifactSynthesizer

GridSlot = tuple[WidgetArchetype, int, int]


def pack_grid(archetypes: Sequence[WidgetArchetype], grid_width: int = 12) -> list[GridSlot]:
    """
    Place archetypes left-to-right, top-to-bottom on a fixed-width grid.

    A tile that would overflow the current row wraps to x=0 below the tallest
    tile of that row.
    """
    slots: list[GridSlot] = []
    x = y = row_height = 0
    for archetype in archetypes:
        width = min(archetype.width, grid_width)
        if x + width > grid_width:
            x = 0
            y += row_height
            row_height = 0
        slots.append((archetype, x, y))
        x += width
        row_height = max(row_height, archetype.height)
    return slots


class DashboardComposer:
    """Builds dashboards from layout presets or explicit archetype lists."""

    def __init__(
        self,
        synthesizer: ArtifactSynthesizer,
        dashboards: DashboardStore,
        settings: EngineSettings | None = None,
    ) -> None:
        self._synthesizer = synthesizer
        self._dashboards = dashboards
        self._settings = settings or EngineSettings()

    def build_widget(
        self,
        archetype_id: str,
        x: int = 0,
        y: int = 0,
        title: str | None = None,
        color: str | None = None,
    ) -> PlacedWidget | None:
        """Materialize one widget, or return ``None`` if it cannot be built."""

        archetype = get_archetype(archetype_id)
        if archetype is None:
            logger.error(f"Unknown template: {archetype_id}")
            return None
        try:
            widget, _ = self._materialize(archetype, x, y, title=title, color=color)
        except SynthesisFailure as exc:
            logger.error(str(exc))
            return None
        return widget

    def _materialize(
        self,
        archetype: WidgetArchetype,
        x: int,
        y: int,
        *,
        title: str | None = None,
        color: str | None = None,
        key: str = "0",
    ) -> tuple[PlacedWidget, ReportResolution | None]:
        common = {
            "i": key,
            "title": title or archetype.name,
            "kind": archetype.kind,
            "x": x,
            "y": y,
            "w": min(archetype.width, self._settings.grid_width),
            "h": archetype.height,
            "color": color or archetype.color,
        }
        if archetype.kind.requires_report:
            resolution = self._synthesizer.resolve_report(archetype)
            return PlacedWidget(**common, report_id=resolution.report_id), resolution

        return (
            PlacedWidget(
                **common,
                filter_id=archetype.filter_id,
                ticket_area_id=archetype.ticket_area_id,
                view_type="all",
                counter_type=0,
                count_format_type=0,
            ),
            None,
        )

    def build_dashboard(
        self,
        name: str,
        layout: str | Sequence[str] = "service_desk",
        description: str = "",
        is_shared: bool = False,
    ) -> BuildResult:
        """
        Build and persist a dashboard from a layout preset name or a list of archetype ids.

        Widgets that cannot be built are recorded in ``errors`` and skipped,
        keeping their grid slot. The build fails only when no widget could be
        built or the dashboard itself cannot be saved.
        """
        try:
            name = validate_artifact_name(name)
        except ValueError as exc:
            return BuildResult(success=False, error=str(exc))

        if isinstance(layout, str):
            widget_ids = resolve_layout(layout)
            if widget_ids is None:
                return BuildResult(
                    success=False,
                    error=f"Unknown layout: {layout}",
                    available_layouts=list(DASHBOARD_LAYOUTS),
                )
        else:
            widget_ids = tuple(layout)

        errors: list[str] = []
        positioned: list[tuple[int, WidgetArchetype]] = []
        for index, widget_id in enumerate(widget_ids):
            archetype = get_archetype(widget_id)
            if archetype is None:
                errors.append(f"Unknown widget template: {widget_id}")
                continue
            positioned.append((index, archetype))

        slots = pack_grid([archetype for _, archetype in positioned], self._settings.grid_width)

        widgets: list[PlacedWidget] = []
        reports_found: list[str] = []
        reports_created: list[str] = []
        for (index, _), (archetype, x, y) in zip(positioned, slots):
            try:
                widget, resolution = self._materialize(archetype, x, y, key=str(index + 1))
            except SynthesisFailure as exc:
                logger.warning(f"Failed to build widget {archetype.id}: {exc}")
                errors.append(f"Failed to build widget: {archetype.id}")
                continue
            widgets.append(widget)
            if resolution is not None:
                entry = f"{resolution.report_name} (for {archetype.name})"
                (reports_found if resolution.source == "found" else reports_created).append(entry)

        if not widgets:
            return BuildResult(success=False, error="No widgets could be built", errors=errors)

        definition = DashboardDefinition(
            name=name,
            description=description or f"Auto-built dashboard with {len(widgets)} widgets",
            is_shared=is_shared,
            widgets=widgets,
        )
        try:
            dashboard = self._dashboards.create(definition)
        except Exception as exc:
            logger.error(f"Failed to create dashboard '{name}': {exc}")
            return BuildResult(success=False, error=str(exc), errors=errors)

        message = (
            f"Dashboard '{name}' created with {len(widgets)} widgets. "
            f"Found {len(reports_found)} existing reports, created {len(reports_created)} new reports."
        )
        logger.success(message)
        return BuildResult(
            success=True,
            dashboard_id=dashboard.id,
            dashboard_name=dashboard.name,
            widgets_added=len(widgets),
            reports_found=reports_found,
            reports_created=reports_created,
            errors=errors,
            message=message,
        )

    def build_custom_dashboard(
        self,
        name: str,
        widget_ids: Sequence[str],
        description: str = "",
        is_shared: bool = False,
    ) -> BuildResult:
        """Build a dashboard from explicit archetype ids, ignoring unknown ones."""

        valid = [widget_id for widget_id in widget_ids if widget_id in WIDGET_TEMPLATES]
        invalid = [widget_id for widget_id in widget_ids if widget_id not in WIDGET_TEMPLATES]
        if not valid:
            return BuildResult(
                success=False,
                error="No valid widget templates provided",
                errors=[f"Invalid widget templates ignored: {', '.join(invalid)}"] if invalid else [],
                available_widgets=list(WIDGET_TEMPLATES),
            )

        result = self.build_dashboard(name, valid, description, is_shared=is_shared)
        if invalid:
            result.errors.append(f"Invalid widget templates ignored: {', '.join(invalid)}")
        return result
