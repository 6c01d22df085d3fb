"""Unit tests for the GitHub session, transport, classifier, and pagination."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from gei_migration_helper.github_client import (
    ClientInitError,
    GitHubApiError,
    GitHubAuthError,
    GitHubGraphQLError,
    GitHubInputError,
    GitHubSession,
    GitHubTransportError,
    OutcomeKind,
    Page,
    PagedSequence,
    Repository,
    classify_response,
    collect_all,
    environment_proxy_for,
    execute_graphql,
    get_github_token,
    get_github_token_with_source,
    next_page_number,
    parse_repo_full_name,
    rate_limit_wait_seconds,
    request_json,
    resolve_graphql_url,
    resolve_settle_delay_seconds,
    validate_issue_number,
)

GRAPHQL_URL = "https://api.github.com/graphql"


def make_session(
    handler: Callable[[httpx.Request], httpx.Response],
    **kwargs: object,
) -> GitHubSession:
    """Create a session backed by mock transport."""
    return GitHubSession(
        api_url="https://api.github.com",
        graphql_url=GRAPHQL_URL,
        settle_delay_seconds=0.0,
        transport=httpx.MockTransport(handler),
        **kwargs,  # type: ignore[arg-type]
    )


def make_repo_payload(*, visibility: str = "private") -> dict[str, object]:
    """Build a minimal valid repository API payload."""
    return {
        "name": "widgets",
        "full_name": "acme/widgets",
        "owner": {"login": "acme"},
        "visibility": visibility,
        "archived": False,
        "default_branch": "main",
        "security_and_analysis": {
            "advanced_security": {"status": "enabled"},
            "secret_scanning": {"status": "disabled"},
        },
    }


@pytest.mark.unit
def test_ensure_clients_reuses_pair_for_same_token() -> None:
    session = make_session(lambda request: httpx.Response(status_code=200, json={}))

    first = session.ensure_clients("token-a")
    second = session.ensure_clients("token-a")

    assert first[0] is second[0]
    assert first[1] is second[1]
    assert session.token == "token-a"


@pytest.mark.unit
def test_ensure_clients_rebuilds_both_clients_when_token_changes() -> None:
    session = make_session(lambda request: httpx.Response(status_code=200, json={}))

    rest_a, graphql_a = session.ensure_clients("token-a")
    rest_b, graphql_b = session.ensure_clients("token-b")

    assert rest_b is not rest_a
    assert graphql_b is not graphql_a
    assert rest_a.is_closed
    assert graphql_a.is_closed
    assert session.token == "token-b"


@pytest.mark.unit
def test_clients_send_bearer_token_of_latest_call() -> None:
    seen_authorization: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_authorization.append(request.headers["Authorization"])
        return httpx.Response(status_code=200, json={"data": {}})

    with make_session(handler) as session:
        session.rest_client("token-a").get("/user")
        session.graphql_client("token-b").post(GRAPHQL_URL, json={"query": "{ viewer { login } }"})

    assert seen_authorization == ["Bearer token-a", "Bearer token-b"]


@pytest.mark.unit
def test_rest_client_sends_api_version_headers() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Accept"] == "application/vnd.github+json"
        assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"
        return httpx.Response(status_code=200, json={})

    with make_session(handler) as session:
        response = session.rest_client("token").get("/user")

    assert response.status_code == 200


@pytest.mark.unit
def test_ensure_clients_rejects_empty_token_without_calling_github() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(status_code=200, json={})

    session = make_session(handler)

    with pytest.raises(ClientInitError):
        session.ensure_clients("")

    assert calls["count"] == 0


@pytest.mark.unit
def test_rate_limit_wait_seconds_uses_reset_header_for_primary_limit() -> None:
    response = httpx.Response(
        status_code=403,
        headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1000"},
    )

    assert rate_limit_wait_seconds(response, now=940.0) == 60.0


@pytest.mark.unit
def test_rate_limit_wait_seconds_ignores_plain_forbidden() -> None:
    response = httpx.Response(
        status_code=403,
        headers={"X-RateLimit-Remaining": "4999"},
        json={"message": "Repository was archived so is read-only."},
    )

    assert rate_limit_wait_seconds(response, now=time.time()) is None


@pytest.mark.unit
def test_transport_waits_for_retry_after_and_resends(
    recorded_sleeps: dict[str, list[float]],
) -> None:
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            return httpx.Response(status_code=429, headers={"Retry-After": "7"})
        return httpx.Response(status_code=200, json={"login": "octocat"})

    with make_session(handler) as session:
        response = session.rest_client("token").get("/user")

    assert response.json() == {"login": "octocat"}
    assert attempts["count"] == 2
    assert recorded_sleeps["rate_limit"] == [7.0]


@pytest.mark.unit
def test_transport_waits_until_primary_rate_limit_reset(
    recorded_sleeps: dict[str, list[float]],
) -> None:
    attempts = {"count": 0}
    reset_at = str(int(time.time()) + 120)

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            return httpx.Response(
                status_code=403,
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": reset_at},
            )
        return httpx.Response(status_code=200, json={})

    with make_session(handler) as session:
        session.rest_client("token").get("/orgs/acme")

    assert attempts["count"] == 2
    assert len(recorded_sleeps["rate_limit"]) == 1
    assert 100.0 < recorded_sleeps["rate_limit"][0] <= 121.0


@pytest.mark.unit
def test_transport_gives_up_after_max_waits(recorded_sleeps: dict[str, list[float]]) -> None:
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        return httpx.Response(status_code=429, headers={"Retry-After": "1"})

    with make_session(handler, max_rate_limit_waits=2) as session:
        response = session.rest_client("token").get("/user")

    assert response.status_code == 429
    assert attempts["count"] == 3
    assert recorded_sleeps["rate_limit"] == [1.0, 1.0]


@pytest.mark.unit
def test_classify_response_routes_statuses() -> None:
    assert classify_response(httpx.Response(status_code=200)).kind is OutcomeKind.SUCCESS
    assert classify_response(httpx.Response(status_code=204)).kind is OutcomeKind.SUCCESS
    assert (
        classify_response(httpx.Response(status_code=422), ignorable_statuses=(422,)).kind
        is OutcomeKind.IGNORABLE
    )
    assert (
        classify_response(httpx.Response(status_code=404), not_found=True).kind
        is OutcomeKind.NOT_FOUND
    )
    assert classify_response(httpx.Response(status_code=404)).kind is OutcomeKind.FATAL
    assert classify_response(httpx.Response(status_code=500), not_found=True).kind is (
        OutcomeKind.FATAL
    )


@pytest.mark.unit
def test_classify_response_keeps_status_code() -> None:
    outcome = classify_response(httpx.Response(status_code=403), ignorable_statuses=(403,))

    assert outcome.status_code == 403
    assert outcome.response.status_code == 403


@pytest.mark.unit
def test_network_failure_maps_to_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with make_session(handler) as session, pytest.raises(GitHubTransportError) as exc_info:
        request_json(session.rest_client("token"), "/user")

    assert exc_info.value.endpoint == "/user"


@pytest.mark.unit
def test_provider_error_carries_status_and_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=500, json={"message": "Server Error"})

    with make_session(handler) as session, pytest.raises(GitHubApiError) as exc_info:
        request_json(session.rest_client("token"), "/orgs/acme")

    assert exc_info.value.status_code == 500
    assert exc_info.value.endpoint == "/orgs/acme"
    assert "Server Error" in str(exc_info.value)


@pytest.mark.unit
def test_collect_all_returns_items_in_order_with_one_call_per_page() -> None:
    pages = {
        None: Page(items=(1, 2), next_token=2),
        2: Page(items=(3,), next_token=3),
        3: Page(items=(4, 5), next_token=None),
    }
    calls: list[object] = []

    def fetch_page(token: object) -> Page[int]:
        calls.append(token)
        return pages[token]  # type: ignore[index]

    assert collect_all(fetch_page) == [1, 2, 3, 4, 5]
    assert calls == [None, 2, 3]


@pytest.mark.unit
def test_collect_all_propagates_page_error_without_partial_result() -> None:
    def fetch_page(token: object) -> Page[int]:
        if token is None:
            return Page(items=(1, 2), next_token="cursor-2")
        raise GitHubApiError("boom", status_code=502, endpoint="/orgs/acme/repos")

    result: list[int] | None = None
    with pytest.raises(GitHubApiError):
        result = collect_all(fetch_page)

    assert result is None


@pytest.mark.unit
def test_collect_all_stops_on_zero_next_token() -> None:
    calls: list[object] = []

    def fetch_page(token: object) -> Page[str]:
        calls.append(token)
        return Page(items=("only",), next_token=0)

    assert collect_all(fetch_page) == ["only"]
    assert calls == [None]


@pytest.mark.unit
def test_paged_sequence_restarts_from_first_page() -> None:
    calls: list[object] = []

    def fetch_page(token: object) -> Page[str]:
        calls.append(token)
        if token is None:
            return Page(items=("a",), next_token="next")
        return Page(items=("b",))

    sequence = PagedSequence(fetch_page)

    assert list(sequence) == ["a", "b"]
    assert list(sequence) == ["a", "b"]
    assert calls == [None, "next", None, "next"]


@pytest.mark.unit
def test_next_page_number_reads_link_header() -> None:
    response = httpx.Response(
        status_code=200,
        headers={
            "Link": (
                '<https://api.github.com/organizations/1/repos?per_page=10&page=3>; rel="next", '
                '<https://api.github.com/organizations/1/repos?per_page=10&page=9>; rel="last"'
            )
        },
    )

    assert next_page_number(response) == 3
    assert next_page_number(httpx.Response(status_code=200)) is None


@pytest.mark.unit
def test_execute_graphql_raises_on_errors_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code=200,
            json={
                "data": None,
                "errors": [{"type": "FORBIDDEN", "message": "Resource not accessible"}],
            },
        )

    with make_session(handler) as session, pytest.raises(GitHubGraphQLError) as exc_info:
        execute_graphql(session.graphql_client("token"), GRAPHQL_URL, query="{ viewer { login } }")

    assert "Resource not accessible" in str(exc_info.value)
    assert exc_info.value.status_code == 200


@pytest.mark.unit
def test_repository_from_payload_reads_security_statuses() -> None:
    repository = Repository.from_payload(make_repo_payload(), endpoint="/repos/acme/widgets")

    assert repository.name == "widgets"
    assert repository.owner == "acme"
    assert repository.visibility == "private"
    assert repository.advanced_security == "enabled"
    assert repository.secret_scanning == "disabled"
    assert repository.secret_scanning_push_protection is None


@pytest.mark.unit
def test_repository_from_payload_rejects_invalid_shape() -> None:
    payload = make_repo_payload()
    payload["archived"] = "no"

    with pytest.raises(GitHubApiError):
        Repository.from_payload(payload, endpoint="/repos/acme/widgets")


@pytest.mark.unit
def test_parse_repo_full_name_accepts_owner_repo() -> None:
    assert parse_repo_full_name("acme/widgets") == ("acme", "widgets")


@pytest.mark.unit
def test_parse_repo_full_name_rejects_invalid_format() -> None:
    with pytest.raises(GitHubInputError):
        parse_repo_full_name("acme")


@pytest.mark.unit
def test_validate_issue_number_rejects_non_positive() -> None:
    with pytest.raises(GitHubInputError):
        validate_issue_number(0)


@pytest.mark.unit
def test_resolve_settle_delay_seconds_defaults_and_env(monkeypatch: pytest.MonkeyPatch) -> None:
    assert resolve_settle_delay_seconds() == 10.0

    monkeypatch.setenv("GHAS_SETTLE_DELAY_SECONDS", "2.5")
    assert resolve_settle_delay_seconds() == 2.5

    monkeypatch.setenv("GHAS_SETTLE_DELAY_SECONDS", "soon")
    with pytest.raises(ValueError):
        resolve_settle_delay_seconds()


@pytest.mark.unit
def test_resolve_graphql_url_follows_api_url(monkeypatch: pytest.MonkeyPatch) -> None:
    assert resolve_graphql_url("https://ghes.example.com/api/v3/") == (
        "https://ghes.example.com/api/v3/graphql"
    )

    monkeypatch.setenv("GITHUB_GRAPHQL_URL", "https://ghes.example.com/api/graphql")
    assert resolve_graphql_url("https://ghes.example.com/api/v3") == (
        "https://ghes.example.com/api/graphql"
    )


@pytest.mark.unit
def test_environment_proxy_for_honors_scheme_and_no_proxy(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    for name in ("http_proxy", "https_proxy", "all_proxy", "no_proxy"):
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(name.upper(), raising=False)
    monkeypatch.setenv("https_proxy", "http://proxy.internal:3128")
    monkeypatch.setenv("no_proxy", "ghes.internal")

    assert environment_proxy_for("https://api.github.com") == "http://proxy.internal:3128"
    assert environment_proxy_for("https://ghes.internal/api/v3") is None
    assert environment_proxy_for("http://ghes.example/api/v3") is None


@pytest.mark.unit
def test_get_github_token_with_source_prefers_explicit_token(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "github-token")

    assert get_github_token_with_source("cli-token") == ("cli-token", "--token")


@pytest.mark.unit
def test_get_github_token_with_source_prefers_github_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "github-token")
    monkeypatch.setenv("GH_TOKEN", "gh-token")

    token, source = get_github_token_with_source()

    assert token == "github-token"
    assert source == "GITHUB_TOKEN"


@pytest.mark.unit
def test_get_github_token_loads_from_dotenv(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)
    (tmp_path / ".env").write_text("GITHUB_TOKEN=dotenv-token\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    assert get_github_token() == "dotenv-token"


@pytest.mark.unit
def test_get_github_token_with_source_raises_when_missing(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)

    with pytest.raises(GitHubAuthError):
        get_github_token_with_source()
