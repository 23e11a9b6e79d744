import json

import httpx
import pytest

from halodash.config import HaloConnection
from halodash.errors import ArtifactNotFound, HaloApiError, HaloAuthenticationError, PersistenceFailure
from halodash.halo_client import (
    HaloClient,
    HaloDashboardStore,
    HaloQueryExecutor,
    HaloReportStore,
    widget_from_api,
)
from halodash.models import DashboardDefinition, NamedQuery, PlacedWidget, WidgetKind

CONNECTION = HaloConnection(
    base_url="https://acme.halopsa.com", client_id="id", client_secret="secret", tenant="acme"
)


class _Api:
    """Records requests and answers them from a route table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/auth/token":
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404)
        return handler(request) if callable(handler) else handler

    def api_requests(self):
        return [request for request in self.requests if request.url.path.startswith("/api")]


def _client(routes):
    api = _Api(routes)
    return HaloClient(CONNECTION, transport=httpx.MockTransport(api)), api


def test_token_is_requested_once_and_sent_as_bearer():
    client, api = _client({("GET", "/api/Report/5"): httpx.Response(200, json={"id": 5, "name": "R"})})

    client.get("/Report/5")
    client.get("/Report/5")

    token_requests = [r for r in api.requests if r.url.path == "/auth/token"]
    assert len(token_requests) == 1
    assert token_requests[0].url.params["tenant"] == "acme"
    assert b"grant_type=client_credentials" in token_requests[0].content
    assert b"scope=all" in token_requests[0].content
    assert all(r.headers["Authorization"] == "Bearer tok" for r in api.api_requests())


def test_failed_authentication():
    def handler(request):
        return httpx.Response(401, text="bad client")

    client = HaloClient(CONNECTION, transport=httpx.MockTransport(handler))
    with pytest.raises(HaloAuthenticationError) as exc_info:
        client.get("/Report")
    assert exc_info.value.status_code == 401


@pytest.mark.parametrize(
    "status,error",
    [(404, ArtifactNotFound), (401, HaloAuthenticationError), (429, HaloApiError), (500, HaloApiError)],
)
def test_status_mapping(status, error):
    client, _ = _client({("GET", "/api/Report/7"): httpx.Response(status, text="nope")})
    with pytest.raises(error):
        client.get("/Report/7", resource="Report", resource_id=7)


def test_report_list_accepts_wrapped_and_plain_responses():
    wrapped, _ = _client(
        {("GET", "/api/Report"): httpx.Response(200, json={"reports": [{"id": 1, "name": "A", "sql_query": "SELECT 1"}]})}
    )
    plain, api = _client({("GET", "/api/Report"): httpx.Response(200, json=[{"id": 2, "name": "B", "sql": "SELECT 2"}])})

    assert [(r.id, r.sql) for r in HaloReportStore(wrapped).list(count=10)] == [(1, "SELECT 1")]
    assert [(r.id, r.sql) for r in HaloReportStore(plain).list(count=10)] == [(2, "SELECT 2")]
    assert api.api_requests()[0].url.params["count"] == "10"


def test_report_create_posts_a_one_item_list():
    def create(request):
        body = json.loads(request.content)
        return httpx.Response(201, json=[{**body[0], "id": 44}])

    client, api = _client({("POST", "/api/Report"): create})
    report = HaloReportStore(client).create(
        NamedQuery(name="Dashboard - X", sql="SELECT 1", category="Dashboard", is_shared=True, chart_type=2)
    )

    sent = json.loads(api.api_requests()[0].content)
    assert sent == [
        {
            "name": "Dashboard - X",
            "sql": "SELECT 1",
            "isshared": True,
            "count": True,
            "showgraphvalues": True,
            "category": "Dashboard",
            "charttype": 2,
        }
    ]
    assert report.id == 44 and report.is_shared


def test_report_create_failure_is_a_persistence_failure():
    client, _ = _client({("POST", "/api/Report"): httpx.Response(500, text="boom")})
    with pytest.raises(PersistenceFailure):
        HaloReportStore(client).create(NamedQuery(name="X", sql="SELECT 1"))


def test_report_update_maps_field_names():
    client, api = _client(
        {("POST", "/api/Report"): httpx.Response(200, json=[{"id": 9, "name": "R", "sql": "SELECT 2"}])}
    )
    report = HaloReportStore(client).update(9, {"sql": "SELECT 2", "is_shared": False})

    assert json.loads(api.api_requests()[0].content) == [{"id": 9, "sql": "SELECT 2", "isshared": False}]
    assert report.sql == "SELECT 2"


def test_report_delete_missing():
    client, _ = _client({})
    with pytest.raises(ArtifactNotFound):
        HaloReportStore(client).delete(3)


def test_executor_runs_report():
    client, api = _client(
        {
            ("GET", "/api/Report/3/run"): httpx.Response(
                200, json={"columns": ["Count"], "rows": [{"Count": 4}], "record_count": 1}
            )
        }
    )
    result = HaloQueryExecutor(client).execute(3, {})

    assert result.columns == ["Count"]
    assert result.row_count == 1


def test_dashboard_create_serializes_widgets():
    def create(request):
        body = json.loads(request.content)
        return httpx.Response(200, json=[{**body[0], "id": 12}])

    client, api = _client({("POST", "/api/DashboardLinks"): create})
    widget = PlacedWidget(
        i="1",
        title="Open",
        kind=WidgetKind.COUNTER_FROM_FILTER,
        x=0,
        y=0,
        w=2,
        h=2,
        color="#0f75b1",
        filter_id=1,
        ticket_area_id=1,
        view_type="all",
        counter_type=0,
        count_format_type=0,
    )

    dashboard = HaloDashboardStore(client).create(DashboardDefinition(name="Ops", widgets=[widget]))

    sent_widget = json.loads(api.api_requests()[0].content)[0]["widgets"][0]
    assert sent_widget == {
        "i": "1",
        "title": "Open",
        "type": 7,
        "x": 0,
        "y": 0,
        "w": 2,
        "h": 2,
        "filter_id": 1,
        "ticketarea_id": 1,
        "initialcolour": "#0f75b1",
        "view_type": "all",
        "counter_type": 0,
        "count_format_type": 0,
    }
    assert dashboard.id == 12
    assert dashboard.widgets[0].kind is WidgetKind.COUNTER_FROM_FILTER


def test_add_widget_appends_with_next_key():
    existing = {
        "id": 12,
        "name": "Ops",
        "widgets": [{"i": "3", "title": "Old", "type": 0, "x": 0, "y": 0, "w": 4, "h": 3, "report_id": 8}],
    }

    def update(request):
        body = json.loads(request.content)[0]
        return httpx.Response(200, json=[{"name": "Ops", **body}])

    client, api = _client(
        {("GET", "/api/DashboardLinks/12"): httpx.Response(200, json=existing), ("POST", "/api/DashboardLinks"): update}
    )
    new_widget = PlacedWidget(title="New", kind=WidgetKind.CHART_PIE, x=4, y=0, w=4, h=3, report_id=9)

    dashboard = HaloDashboardStore(client).add_widget(12, new_widget)

    posted = json.loads(api.api_requests()[-1].content)[0]
    assert [w["i"] for w in posted["widgets"]] == ["3", "4"]
    assert [w.report_id for w in dashboard.widgets] == [8, 9]


def test_delete_unknown_widget():
    client, _ = _client({("GET", "/api/DashboardLinks/1"): httpx.Response(200, json={"id": 1, "name": "D", "widgets": []})})
    with pytest.raises(ArtifactNotFound):
        HaloDashboardStore(client).delete_widget(1, "5")


def test_unsupported_widget_types_are_skipped_when_reading():
    with pytest.raises(ValueError):
        widget_from_api({"type": 42, "title": "Odd"})

    client, _ = _client(
        {
            ("GET", "/api/DashboardLinks/1"): httpx.Response(
                200, json={"id": 1, "name": "D", "widgets": [{"type": 42, "title": "Odd"}]}
            )
        }
    )
    assert HaloDashboardStore(client).get(1).widgets == []
