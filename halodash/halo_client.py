"""
HaloPSA REST implementations of the engine's collaborators.

:class:`HaloClient` owns the HTTP session and the OAuth2 client-credentials
token. The three store classes translate between halodash models and the
HaloPSA wire format:

* reports live under ``/Report`` and run through ``/Report/{id}/run``;
* dashboards live under ``/DashboardLinks``;
* creates and updates are POSTs of a one-element list, with ``id`` set for updates.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from .config import HaloConnection
from .errors import ArtifactNotFound, HaloApiError, HaloAuthenticationError, PersistenceFailure
from .models import DashboardDefinition, NamedQuery, PlacedWidget, QueryResult, WidgetKind

__all__ = ["HaloClient", "HaloDashboardStore", "HaloQueryExecutor", "HaloReportStore"]

TOKEN_EXPIRY_BUFFER_SECONDS = 60
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


class HaloClient:
    """Thin authenticated JSON client for the HaloPSA API."""

    def __init__(self, connection: HaloConnection, transport: httpx.BaseTransport | None = None) -> None:
        self.connection = connection
        self._http = httpx.Client(timeout=connection.timeout_seconds, transport=transport)
        self._token: str | None = None
        self._token_expires_at = 0.0

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "HaloClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at - TOKEN_EXPIRY_BUFFER_SECONDS:
            return self._token

        logger.debug(f"Requesting HaloPSA access token from {self.connection.auth_url}")
        try:
            response = self._http.post(
                self.connection.auth_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.connection.client_id,
                    "client_secret": self.connection.client_secret,
                    "scope": "all",
                },
            )
        except httpx.RequestError as exc:
            raise HaloAuthenticationError(f"Authentication request failed: {exc}") from exc
        if response.status_code != 200:
            raise HaloAuthenticationError(
                f"Authentication failed: {response.status_code} - {response.text}", response.status_code
            )

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise HaloAuthenticationError("Authentication response did not include an access token.")
        self._token = token
        self._token_expires_at = time.monotonic() + float(
            payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS
        )
        return token

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        resource: str = "Resource",
        resource_id: int | None = None,
    ) -> Any:
        """
        Send an authenticated request and return the decoded JSON body.

        Raises:
            ArtifactNotFound: On HTTP 404.
            HaloAuthenticationError: On HTTP 401 or a failed token exchange.
            HaloApiError: On any other unsuccessful response or transport error.
        """
        url = f"{self.connection.api_url}{path}"
        headers = {
            "Authorization": f"Bearer {self._access_token()}",
            "Accept": "application/json",
        }
        try:
            response = self._http.request(method, url, json=json, params=params, headers=headers)
        except httpx.RequestError as exc:
            raise HaloApiError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404:
            raise ArtifactNotFound(resource, resource_id)
        if response.status_code == 401:
            self._token = None
            raise HaloAuthenticationError("Invalid credentials or expired token", 401)
        if response.status_code == 429:
            raise HaloApiError("Rate limit exceeded", 429)
        if response.status_code >= 400:
            raise HaloApiError(
                f"{method} {path} failed: {response.status_code} - {response.text}", response.status_code
            )
        if not response.content:
            return None
        return response.json()

    def get(self, path: str, params: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        return self.request("GET", path, params=params, **kwargs)

    def post(self, path: str, body: Any, **kwargs: Any) -> Any:
        return self.request("POST", path, json=body, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> None:
        self.request("DELETE", path, **kwargs)


def _first_record(response: Any) -> dict[str, Any] | None:
    if isinstance(response, list):
        return response[0] if response else None
    if isinstance(response, dict):
        return response
    return None


def _records(response: Any, key: str = "records") -> list[dict[str, Any]]:
    if isinstance(response, list):
        return response
    if isinstance(response, dict):
        return list(response.get(key) or [])
    return []


def report_to_payload(report: NamedQuery) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": report.name,
        "sql": report.sql,
        "isshared": report.is_shared,
        "count": report.count,
        "showgraphvalues": report.show_graph_values,
    }
    if report.id is not None:
        payload["id"] = report.id
    if report.description:
        payload["description"] = report.description
    if report.category:
        payload["category"] = report.category
    if report.chart_type is not None:
        payload["charttype"] = report.chart_type
    if report.x_axis:
        payload["xaxis"] = report.x_axis
    if report.y_axis:
        payload["yaxis"] = report.y_axis
    if report.chart_title:
        payload["charttitle"] = report.chart_title
    return payload


def report_from_api(data: dict[str, Any]) -> NamedQuery:
    return NamedQuery(
        id=data.get("id"),
        name=data.get("name") or f"Report {data.get('id')}",
        sql=data.get("sql_query") or data.get("sql") or "",
        description=data.get("description"),
        category=data.get("category"),
        is_shared=bool(data.get("is_shared", data.get("isshared", False))),
        author_name=data.get("author_name"),
        chart_type=data.get("charttype"),
        x_axis=data.get("xaxis"),
        y_axis=data.get("yaxis"),
        chart_title=data.get("charttitle"),
        count=data.get("count", True),
        show_graph_values=data.get("showgraphvalues", True),
    )


_REPORT_FIELD_KEYS = {
    "name": "name",
    "sql": "sql",
    "description": "description",
    "category": "category",
    "is_shared": "isshared",
    "chart_type": "charttype",
    "x_axis": "xaxis",
    "y_axis": "yaxis",
    "chart_title": "charttitle",
    "count": "count",
    "show_graph_values": "showgraphvalues",
}


def widget_to_payload(widget: PlacedWidget) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "i": widget.i,
        "title": widget.title,
        "type": widget.kind.halo_type,
        "x": widget.x,
        "y": widget.y,
        "w": widget.w,
        "h": widget.h,
    }
    if widget.report_id:
        payload["report_id"] = widget.report_id
    if widget.filter_id:
        payload["filter_id"] = widget.filter_id
    if widget.ticket_area_id:
        payload["ticketarea_id"] = widget.ticket_area_id
    if widget.color:
        payload["initialcolour"] = widget.color
    if widget.view_type is not None:
        payload["view_type"] = widget.view_type
    if widget.counter_type is not None:
        payload["counter_type"] = widget.counter_type
    if widget.count_format_type is not None:
        payload["count_format_type"] = widget.count_format_type
    return payload


def widget_from_api(data: dict[str, Any]) -> PlacedWidget:
    kind = WidgetKind.from_halo_type(int(data.get("type", 0)))
    binding: dict[str, Any]
    if kind.requires_report:
        binding = {"report_id": data.get("report_id")}
    else:
        binding = {"filter_id": data.get("filter_id"), "ticket_area_id": data.get("ticketarea_id")}
    return PlacedWidget(
        i=str(data.get("i", "0")),
        title=data.get("title") or data.get("name") or "",
        kind=kind,
        x=data.get("x", 0),
        y=data.get("y", 0),
        w=data.get("w", 4),
        h=data.get("h", 2),
        color=data.get("initialcolour"),
        view_type=data.get("view_type"),
        counter_type=data.get("counter_type"),
        count_format_type=data.get("count_format_type"),
        **binding,
    )


def dashboard_from_api(data: dict[str, Any]) -> DashboardDefinition:
    widgets: list[PlacedWidget] = []
    for raw in data.get("widgets") or []:
        try:
            widgets.append(widget_from_api(raw))
        except (ValueError, ValidationError) as exc:
            logger.warning(f"Skipping unsupported widget '{raw.get('title')}' on dashboard {data.get('id')}: {exc}")
    return DashboardDefinition(
        id=data.get("id"),
        name=data.get("name") or f"Dashboard {data.get('id')}",
        description=data.get("description"),
        is_shared=bool(data.get("is_shared", False)),
        widgets=widgets,
    )


class HaloReportStore:
    """Report CRUD against ``/Report``."""

    endpoint = "/Report"

    def __init__(self, client: HaloClient) -> None:
        self._client = client

    def list(self, count: int = 50, **filters: Any) -> list[NamedQuery]:
        response = self._client.get(self.endpoint, params={"count": count, **filters}, resource="Report")
        return [report_from_api(record) for record in _records(response, "reports") or _records(response)]

    def get(self, report_id: int) -> NamedQuery:
        data = self._client.get(f"{self.endpoint}/{report_id}", resource="Report", resource_id=report_id)
        return report_from_api(data)

    def create(self, report: NamedQuery) -> NamedQuery:
        try:
            response = self._client.post(self.endpoint, [report_to_payload(report)], resource="Report")
        except HaloApiError as exc:
            raise PersistenceFailure(f"Failed to create report '{report.name}': {exc}") from exc
        record = _first_record(response)
        if not record or not record.get("id"):
            raise PersistenceFailure(f"Report '{report.name}' created but no valid ID returned.")
        return report_from_api({**report_to_payload(report), **record})

    def update(self, report_id: int, changes: dict[str, Any]) -> NamedQuery:
        payload: dict[str, Any] = {"id": report_id}
        for field, value in changes.items():
            payload[_REPORT_FIELD_KEYS.get(field, field)] = value
        try:
            response = self._client.post(self.endpoint, [payload], resource="Report", resource_id=report_id)
        except ArtifactNotFound:
            raise
        except HaloApiError as exc:
            raise PersistenceFailure(f"Failed to update report {report_id}: {exc}") from exc
        record = _first_record(response)
        if record and record.get("id"):
            return report_from_api(record)
        return self.get(report_id)

    def delete(self, report_id: int) -> None:
        try:
            self._client.delete(f"{self.endpoint}/{report_id}", resource="Report", resource_id=report_id)
        except ArtifactNotFound:
            raise
        except HaloApiError as exc:
            raise PersistenceFailure(f"Failed to delete report {report_id}: {exc}") from exc


class HaloQueryExecutor:
    """Runs stored reports through ``/Report/{id}/run``."""

    def __init__(self, client: HaloClient) -> None:
        self._client = client

    def fetch(self, report_id: int) -> NamedQuery:
        data = self._client.get(f"/Report/{report_id}", resource="Report", resource_id=report_id)
        return report_from_api(data)

    def execute(self, report_id: int, params: dict[str, Any] | None = None) -> QueryResult:
        response = self._client.get(
            f"/Report/{report_id}/run", params=params or None, resource="Report", resource_id=report_id
        )
        response = response or {}
        rows = list(response.get("rows") or [])
        return QueryResult(
            columns=list(response.get("columns") or []),
            rows=rows,
            row_count=response.get("record_count") or len(rows),
        )


class HaloDashboardStore:
    """Dashboard CRUD against ``/DashboardLinks``; widgets are edited via get-modify-update."""

    endpoint = "/DashboardLinks"

    def __init__(self, client: HaloClient) -> None:
        self._client = client

    def _raw(self, dashboard_id: int) -> dict[str, Any]:
        return self._client.get(
            f"{self.endpoint}/{dashboard_id}", resource="Dashboard", resource_id=dashboard_id
        )

    def _post(self, payload: dict[str, Any], dashboard_id: int | None = None) -> dict[str, Any] | None:
        try:
            response = self._client.post(
                self.endpoint, [payload], resource="Dashboard", resource_id=dashboard_id
            )
        except ArtifactNotFound:
            raise
        except HaloApiError as exc:
            raise PersistenceFailure(f"Failed to save dashboard '{payload.get('name', dashboard_id)}': {exc}") from exc
        record = _first_record(response)
        return record if record and record.get("id") else None

    def create(self, dashboard: DashboardDefinition) -> DashboardDefinition:
        payload: dict[str, Any] = {"name": dashboard.name, "is_shared": dashboard.is_shared}
        if dashboard.description:
            payload["description"] = dashboard.description
        if dashboard.widgets:
            payload["widgets"] = [widget_to_payload(widget) for widget in dashboard.widgets]
        record = self._post(payload)
        if record is None:
            raise PersistenceFailure(f"Dashboard '{dashboard.name}' created but no valid ID returned.")
        return dashboard_from_api({**payload, **record})

    def get(self, dashboard_id: int) -> DashboardDefinition:
        return dashboard_from_api(self._raw(dashboard_id))

    def update(self, dashboard_id: int, changes: dict[str, Any]) -> DashboardDefinition:
        payload: dict[str, Any] = {"id": dashboard_id}
        for field, value in changes.items():
            if field == "widgets":
                value = [
                    widget_to_payload(widget) if isinstance(widget, PlacedWidget) else widget
                    for widget in value
                ]
            payload[field] = value
        record = self._post(payload, dashboard_id)
        return dashboard_from_api(record) if record else self.get(dashboard_id)

    def delete(self, dashboard_id: int) -> None:
        try:
            self._client.delete(
                f"{self.endpoint}/{dashboard_id}", resource="Dashboard", resource_id=dashboard_id
            )
        except ArtifactNotFound:
            raise
        except HaloApiError as exc:
            raise PersistenceFailure(f"Failed to delete dashboard {dashboard_id}: {exc}") from exc

    def add_widget(self, dashboard_id: int, widget: PlacedWidget) -> DashboardDefinition:
        widgets = list(self._raw(dashboard_id).get("widgets") or [])
        keys = [int(w["i"]) for w in widgets if str(w.get("i", "")).isdigit()]
        payload = widget_to_payload(widget)
        payload["i"] = str(max(keys, default=0) + 1)
        widgets.append(payload)
        return self.update(dashboard_id, {"widgets": widgets})

    def update_widget(self, dashboard_id: int, widget_key: str, changes: dict[str, Any]) -> DashboardDefinition:
        widgets = list(self._raw(dashboard_id).get("widgets") or [])
        for raw in widgets:
            if str(raw.get("i")) == str(widget_key):
                raw.update(changes)
                break
        else:
            raise ArtifactNotFound("Widget", widget_key)
        return self.update(dashboard_id, {"widgets": widgets})

    def delete_widget(self, dashboard_id: int, widget_key: str) -> DashboardDefinition:
        widgets = list(self._raw(dashboard_id).get("widgets") or [])
        remaining = [raw for raw in widgets if str(raw.get("i")) != str(widget_key)]
        if len(remaining) == len(widgets):
            raise ArtifactNotFound("Widget", widget_key)
        return self.update(dashboard_id, {"widgets": remaining})
