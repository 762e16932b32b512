"""Tests for sonar_findings/client.py"""

import json
import warnings

import pytest

from sonar_findings.client import (
    AuthenticationError,
    DecodeError,
    NetworkError,
    NotFoundError,
    PagingSchemaError,
    SonarClient,
    SonarClientError,
)

BASE = "https://sonar.example.com"
ISSUES_URL = f"{BASE}/api/issues/search"
HOTSPOTS_URL = f"{BASE}/api/hotspots/search"


@pytest.fixture
def client() -> SonarClient:
    return SonarClient(url=BASE, token="squ_test")


def _issues_page(keys: list, total: int, page_size: int = 500) -> dict:
    return {
        "paging": {"pageIndex": 1, "pageSize": page_size, "total": total},
        "issues": [{"key": k} for k in keys],
    }


def _collect(client, api_path) -> list:
    pages = []
    client.fetch_all_pages(api_path, pages.append)
    return pages


# ---------------------------------------------------------------------------
# get_text() — transport
# ---------------------------------------------------------------------------

def test_get_text_returns_body(client, requests_mock):
    requests_mock.get(f"{BASE}/api/server/version", text="10.4.0.87286")
    assert client.get_text("server/version") == "10.4.0.87286"


def test_get_text_sends_basic_auth_with_empty_password(client, requests_mock):
    adapter = requests_mock.get(f"{BASE}/api/server/version", text="1")
    client.get_text("server/version")
    # base64("squ_test:")
    assert adapter.last_request.headers["Authorization"] == "Basic c3F1X3Rlc3Q6"


def test_base_url_trailing_slash_is_ignored(requests_mock):
    adapter = requests_mock.get(f"{BASE}/api/server/version", text="1")
    SonarClient(url=BASE + "/", token="t").get_text("server/version")
    assert adapter.called


def test_401_raises_authentication_error(client, requests_mock):
    requests_mock.get(f"{BASE}/api/server/version", status_code=401)
    with pytest.raises(AuthenticationError):
        client.get_text("server/version")


def test_404_raises_not_found_error(client, requests_mock):
    requests_mock.get(f"{BASE}/api/server/version", status_code=404)
    with pytest.raises(NotFoundError, match="server/version"):
        client.get_text("server/version")


def test_500_message_has_status_url_and_body(client, requests_mock):
    requests_mock.get(f"{BASE}/api/server/version", status_code=500, text="Internal Server Error")
    with pytest.raises(SonarClientError) as excinfo:
        client.get_text("server/version")
    message = str(excinfo.value)
    assert "500" in message
    assert f"{BASE}/api/server/version" in message
    assert "Internal Server Error" in message


def test_error_body_is_truncated(client, requests_mock):
    requests_mock.get(f"{BASE}/api/server/version", status_code=500, text="x" * 2000)
    with pytest.raises(SonarClientError) as excinfo:
        client.get_text("server/version")
    assert "x" * 500 + "..." in str(excinfo.value)
    assert "x" * 501 not in str(excinfo.value)


def test_timeout_raises_network_error(client, requests_mock):
    import requests
    requests_mock.get(f"{BASE}/api/server/version", exc=requests.exceptions.Timeout)
    with pytest.raises(NetworkError, match="timed out"):
        client.get_text("server/version")


def test_connection_error_raises_network_error(client, requests_mock):
    import requests
    requests_mock.get(f"{BASE}/api/server/version", exc=requests.exceptions.ConnectionError)
    with pytest.raises(NetworkError, match="Unable to reach"):
        client.get_text("server/version")


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        SonarClient(url=BASE, token="t", page_size=0)


# ---------------------------------------------------------------------------
# fetch_all_pages() — request construction
# ---------------------------------------------------------------------------

def test_paging_params_appended_after_existing_query(client, requests_mock):
    adapter = requests_mock.get(ISSUES_URL, json=_issues_page([], total=0))
    client.fetch_all_pages("issues/search?projects=demo", lambda page: None)

    qs = adapter.last_request.qs
    assert qs["projects"] == ["demo"]
    assert qs["p"] == ["1"]
    assert qs["ps"] == ["500"]


def test_paging_params_start_query_when_none(client, requests_mock):
    adapter = requests_mock.get(ISSUES_URL, json=_issues_page([], total=0))
    client.fetch_all_pages("issues/search", lambda page: None)
    assert adapter.last_request.url == f"{ISSUES_URL}?p=1&ps=500"


def test_configured_page_size_is_requested(requests_mock):
    adapter = requests_mock.get(ISSUES_URL, json=_issues_page([], total=0, page_size=50))
    SonarClient(url=BASE, token="t", page_size=50).fetch_all_pages("issues/search", lambda page: None)
    assert adapter.last_request.qs["ps"] == ["50"]


def test_path_with_page_number_is_rejected(client, requests_mock):
    with pytest.raises(ValueError, match="page number"):
        client.fetch_all_pages("issues/search?projects=demo&p=2", lambda page: None)
    assert not requests_mock.called


# ---------------------------------------------------------------------------
# fetch_all_pages() — page count
# ---------------------------------------------------------------------------

def test_1200_results_with_500_per_page_fetch_three_pages(client, requests_mock):
    adapter = requests_mock.get(ISSUES_URL, [
        {"json": _issues_page([f"i{i}" for i in range(500)], total=1200)},
        {"json": _issues_page([f"i{i}" for i in range(500, 1000)], total=1200)},
        {"json": _issues_page([f"i{i}" for i in range(1000, 1200)], total=1200)},
    ])

    pages = _collect(client, "issues/search")

    assert len(pages) == 3
    assert [r.qs["p"] for r in adapter.request_history] == [["1"], ["2"], ["3"]]
    assert sum(len(p.issues) for p in pages) == 1200


def test_zero_results_still_fetch_one_page(client, requests_mock):
    adapter = requests_mock.get(ISSUES_URL, json=_issues_page([], total=0))

    pages = _collect(client, "issues/search")

    assert adapter.call_count == 1
    assert len(pages) == 1
    assert pages[0].issues == []


@pytest.mark.parametrize("total,page_size,expected", [
    (1, 500, 1),
    (500, 500, 1),
    (501, 500, 2),
    (7, 3, 3),
    (10, 1, 10),
])
def test_callback_runs_ceil_total_over_page_size_times(client, requests_mock, total, page_size, expected):
    adapter = requests_mock.get(ISSUES_URL, json=_issues_page([], total=total, page_size=page_size))
    pages = _collect(client, "issues/search")
    assert len(pages) == expected
    assert adapter.call_count == expected


def test_server_clamped_page_size_is_honoured(client, requests_mock):
    """We ask for 500 per page but the server only returns 100."""
    adapter = requests_mock.get(ISSUES_URL, json=_issues_page([], total=250, page_size=100))
    _collect(client, "issues/search")
    assert adapter.call_count == 3


def test_callback_finishes_before_next_page_is_requested(client, requests_mock):
    adapter = requests_mock.get(ISSUES_URL, json=_issues_page([], total=3, page_size=1))
    seen = []
    client.fetch_all_pages("issues/search", lambda page: seen.append(adapter.call_count))
    assert seen == [1, 2, 3]


# ---------------------------------------------------------------------------
# fetch_all_pages() — the two envelope shapes
# ---------------------------------------------------------------------------

def test_flat_total_and_ps_shape(client, requests_mock):
    body = {"p": 1, "ps": 2, "total": 3, "hotspots": [{"key": "h1"}, {"key": "h2"}]}
    adapter = requests_mock.get(HOTSPOTS_URL, json=body)
    pages = _collect(client, "hotspots/search?projectKey=demo")
    assert adapter.call_count == 2
    assert pages[0].hotspots == ['{"key": "h1"}', '{"key": "h2"}']


def test_long_spelling_shape(client, requests_mock):
    adapter = requests_mock.get(HOTSPOTS_URL, json={"totalResults": 250, "pageSize": 100, "hotspots": []})
    pages = _collect(client, "hotspots/search")
    assert adapter.call_count == 3
    assert len(pages) == 3


def test_paging_result_count_spelling(client, requests_mock):
    adapter = requests_mock.get(ISSUES_URL, json={"paging": {"resultCount": 3, "pageSize": 2}, "issues": []})
    _collect(client, "issues/search")
    assert adapter.call_count == 2


def test_paging_total_takes_precedence_over_flat_total(client, requests_mock):
    body = {"paging": {"pageIndex": 1, "pageSize": 1, "total": 3}, "total": 1, "hotspots": []}
    adapter = requests_mock.get(HOTSPOTS_URL, json=body)
    _collect(client, "hotspots/search")
    assert adapter.call_count == 3


def test_missing_totals_raise_schema_error(client, requests_mock):
    adapter = requests_mock.get(ISSUES_URL, json={"issues": [{"key": "i1"}]})
    with pytest.raises(PagingSchemaError, match=r"total result count for issues/search \(page 1\)"):
        _collect(client, "issues/search")
    assert adapter.call_count == 1


def test_missing_page_size_raises_schema_error(client, requests_mock):
    requests_mock.get(ISSUES_URL, json={"total": 10, "issues": []})
    with pytest.raises(PagingSchemaError, match="page size"):
        _collect(client, "issues/search")


def test_zero_page_size_raises_schema_error(client, requests_mock):
    requests_mock.get(ISSUES_URL, json={"paging": {"pageSize": 0, "total": 10}, "issues": []})
    with pytest.raises(PagingSchemaError, match="page size"):
        _collect(client, "issues/search")


def test_schema_error_includes_truncated_response(client, requests_mock):
    body = json.dumps({"issues": [], "padding": "y" * 1000})
    requests_mock.get(ISSUES_URL, text=body)
    with pytest.raises(PagingSchemaError) as excinfo:
        _collect(client, "issues/search")
    assert body[:500] + "..." in str(excinfo.value)


# ---------------------------------------------------------------------------
# fetch_all_pages() — failures abort the walk
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("status", [404, 500])
def test_error_status_with_empty_body_aborts(client, requests_mock, status):
    adapter = requests_mock.get(ISSUES_URL, [
        {"json": _issues_page(["i1"], total=1500)},
        {"status_code": status, "text": ""},
        {"json": _issues_page(["i3"], total=1500)},
    ])
    pages = []
    with pytest.raises(SonarClientError):
        client.fetch_all_pages("issues/search", pages.append)
    assert len(pages) == 1
    assert adapter.call_count == 2


def test_invalid_json_raises_decode_error(client, requests_mock):
    requests_mock.get(ISSUES_URL, text="<html>maintenance</html>")
    with pytest.raises(DecodeError, match="page 1") as excinfo:
        _collect(client, "issues/search")
    assert isinstance(excinfo.value.__cause__, json.JSONDecodeError)


def test_non_object_json_raises_decode_error(client, requests_mock):
    requests_mock.get(ISSUES_URL, json=[1, 2, 3])
    with pytest.raises(DecodeError):
        _collect(client, "issues/search")


def test_callback_errors_propagate(client, requests_mock):
    adapter = requests_mock.get(ISSUES_URL, json=_issues_page([], total=3, page_size=1))

    def boom(page):
        raise RuntimeError("handler failed")

    with pytest.raises(RuntimeError, match="handler failed"):
        client.fetch_all_pages("issues/search", boom)
    assert adapter.call_count == 1


# ---------------------------------------------------------------------------
# fetch_all_pages() — oversized result sets
# ---------------------------------------------------------------------------

def test_warns_once_above_10000(client, requests_mock):
    requests_mock.get(ISSUES_URL, json=_issues_page([], total=10_001, page_size=5_001))
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _collect(client, "issues/search")

    relevant = [w for w in caught if "10 000" in str(w.message)]
    assert len(relevant) == 1


def test_no_warning_at_or_below_10000(client, requests_mock):
    requests_mock.get(ISSUES_URL, json=_issues_page([], total=10_000, page_size=10_000))
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _collect(client, "issues/search")
    assert not [w for w in caught if "10 000" in str(w.message)]
