"""GitHub API session, transport, pagination, and error classification."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Collection, Iterator
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Generic, NoReturn, TypeVar
from urllib.parse import parse_qs, urlsplit
from urllib.request import getproxies, proxy_bypass

import httpx
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_SETTLE_DELAY_SECONDS = 10.0
DEFAULT_MAX_RATE_LIMIT_WAITS = 10
MIN_RATE_LIMIT_WAIT_SECONDS = 1.0
GITHUB_API_URL_ENV_VAR = "GITHUB_API_URL"
GITHUB_GRAPHQL_URL_ENV_VAR = "GITHUB_GRAPHQL_URL"
GHAS_SETTLE_DELAY_ENV_VAR = "GHAS_SETTLE_DELAY_SECONDS"

ItemT = TypeVar("ItemT")
PageToken = str | int | None


class GitHubError(RuntimeError):
    """Base class for every failure surfaced by the GitHub façade."""


class ClientInitError(GitHubError):
    """Raised when authenticated API clients cannot be constructed."""


class GitHubAuthError(ClientInitError):
    """Raised when required GitHub authentication is missing."""


class GitHubInputError(ValueError):
    """Raised when repository or issue input values are invalid."""


class GitHubTransportError(GitHubError):
    """Raised when a request fails before GitHub returns a response."""

    def __init__(self, message: str, *, endpoint: str) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class GitHubApiError(GitHubError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, *, status_code: int, endpoint: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class GitHubGraphQLError(GitHubApiError):
    """Raised when a GraphQL response carries an ``errors`` payload."""


class GitHubNotFoundError(GitHubApiError):
    """Raised when the requested entity does not exist."""


class RepositoryNotFoundError(GitHubNotFoundError):
    """Raised when a repository lookup returns 404."""


class IssueNotFoundError(GitHubNotFoundError):
    """Raised when an issue lookup returns 404."""


class BranchProtectionDeletionError(GitHubError):
    """Raised when deleting a branch protection rule fails."""

    def __init__(self, message: str, *, rule_id: str) -> None:
        super().__init__(message)
        self.rule_id = rule_id


class OutcomeKind(StrEnum):
    """How a provider response should be treated by the caller."""

    SUCCESS = "success"
    IGNORABLE = "ignorable"
    NOT_FOUND = "not_found"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class ProviderOutcome:
    """Classified provider response."""

    kind: OutcomeKind
    status_code: int
    response: httpx.Response


@dataclass(frozen=True, slots=True)
class Page(Generic[ItemT]):
    """One page of a paginated collection."""

    items: tuple[ItemT, ...]
    next_token: PageToken = None


@dataclass(frozen=True, slots=True)
class Repository:
    """Repository fields used by the migration commands."""

    name: str
    owner: str
    full_name: str
    visibility: str
    archived: bool
    default_branch: str | None
    advanced_security: str | None = None
    secret_scanning: str | None = None
    secret_scanning_push_protection: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, endpoint: str) -> Repository:
        owner_payload = require_object(payload, key="owner", endpoint=endpoint)
        default_branch = payload.get("default_branch")
        if default_branch is not None and not isinstance(default_branch, str):
            raise GitHubApiError(
                "Expected 'default_branch' to be a string or null in GitHub response.",
                status_code=500,
                endpoint=endpoint,
            )
        security = payload.get("security_and_analysis") or {}
        if not isinstance(security, dict):
            raise GitHubApiError(
                "Expected 'security_and_analysis' to be an object or null in GitHub response.",
                status_code=500,
                endpoint=endpoint,
            )
        return cls(
            name=require_str(payload, key="name", endpoint=endpoint),
            owner=require_str(owner_payload, key="login", endpoint=endpoint),
            full_name=require_str(payload, key="full_name", endpoint=endpoint),
            visibility=require_str(payload, key="visibility", endpoint=endpoint),
            archived=require_bool(payload, key="archived", endpoint=endpoint),
            default_branch=default_branch,
            advanced_security=_feature_status(security, "advanced_security"),
            secret_scanning=_feature_status(security, "secret_scanning"),
            secret_scanning_push_protection=_feature_status(
                security, "secret_scanning_push_protection"
            ),
        )


@dataclass(frozen=True, slots=True)
class Workflow:
    """GitHub Actions workflow belonging to one repository."""

    id: int
    name: str
    path: str
    state: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, endpoint: str) -> Workflow:
        return cls(
            id=require_int(payload, key="id", endpoint=endpoint),
            name=require_str(payload, key="name", endpoint=endpoint),
            path=require_str(payload, key="path", endpoint=endpoint),
            state=require_str(payload, key="state", endpoint=endpoint),
        )


@dataclass(frozen=True, slots=True)
class BranchProtectionRule:
    """Branch protection rule addressed by its GraphQL node id."""

    id: str
    pattern: str | None = None


@dataclass(frozen=True, slots=True)
class ScanningAnalysis:
    """One code scanning analysis for a repository ref."""

    id: int
    ref: str
    analysis_key: str
    tool_name: str | None
    created_at: str
    results_count: int

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, endpoint: str) -> ScanningAnalysis:
        tool = payload.get("tool") or {}
        tool_name = tool.get("name") if isinstance(tool, dict) else None
        return cls(
            id=require_int(payload, key="id", endpoint=endpoint),
            ref=require_str(payload, key="ref", endpoint=endpoint),
            analysis_key=require_str(payload, key="analysis_key", endpoint=endpoint),
            tool_name=tool_name if isinstance(tool_name, str) else None,
            created_at=require_str(payload, key="created_at", endpoint=endpoint),
            results_count=require_int(payload, key="results_count", endpoint=endpoint),
        )


@dataclass(frozen=True, slots=True)
class Issue:
    """Repository issue."""

    number: int
    title: str
    body: str
    state: str
    html_url: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, endpoint: str) -> Issue:
        body = payload.get("body")
        if body is None:
            body = ""
        elif not isinstance(body, str):
            raise GitHubApiError(
                "Expected 'body' to be a string or null in GitHub response.",
                status_code=500,
                endpoint=endpoint,
            )
        return cls(
            number=require_int(payload, key="number", endpoint=endpoint),
            title=require_str(payload, key="title", endpoint=endpoint),
            body=body,
            state=require_str(payload, key="state", endpoint=endpoint),
            html_url=require_str(payload, key="html_url", endpoint=endpoint),
        )


def _feature_status(security: dict[str, Any], feature: str) -> str | None:
    """Read ``security_and_analysis.<feature>.status`` if present."""
    setting = security.get(feature)
    if not isinstance(setting, dict):
        return None
    status = setting.get("status")
    return status if isinstance(status, str) else None


def ensure_mapping(value: object, *, context: str) -> dict[str, Any]:
    """Ensure a response fragment is a JSON object."""
    if not isinstance(value, dict):
        raise GitHubApiError(
            f"Expected JSON object for {context}.",
            status_code=500,
            endpoint=context,
        )
    return value


def require_str(payload: dict[str, Any], *, key: str, endpoint: str) -> str:
    """Read a required string field from payload."""
    value = payload.get(key)
    if not isinstance(value, str):
        raise GitHubApiError(
            f"Expected string field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def require_bool(payload: dict[str, Any], *, key: str, endpoint: str) -> bool:
    """Read a required boolean field from payload."""
    value = payload.get(key)
    if not isinstance(value, bool):
        raise GitHubApiError(
            f"Expected boolean field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def require_int(payload: dict[str, Any], *, key: str, endpoint: str) -> int:
    """Read a required integer field from payload."""
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise GitHubApiError(
            f"Expected integer field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def require_object(payload: dict[str, Any], *, key: str, endpoint: str) -> dict[str, Any]:
    """Read a required object field from payload."""
    value = payload.get(key)
    if not isinstance(value, dict):
        raise GitHubApiError(
            f"Expected object field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def require_list(payload: dict[str, Any], *, key: str, endpoint: str) -> list[dict[str, Any]]:
    """Read a required array-of-objects field from payload."""
    value = payload.get(key)
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise GitHubApiError(
            f"Expected array of objects in field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def load_env_file() -> None:
    """Load ``./.env`` into the environment without overriding set variables."""
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)


def resolve_api_url() -> str:
    """Return the REST API base URL, optionally overridden by environment."""
    return (os.getenv(GITHUB_API_URL_ENV_VAR) or GITHUB_API_BASE_URL).rstrip("/")


def resolve_graphql_url(api_url: str) -> str:
    """Return the GraphQL endpoint for a REST base URL."""
    configured_url = os.getenv(GITHUB_GRAPHQL_URL_ENV_VAR)
    if configured_url:
        return configured_url
    return f"{api_url.rstrip('/')}/graphql"


def resolve_settle_delay_seconds() -> float:
    """Return the security-settings settle delay from environment or default."""
    configured_value = os.getenv(GHAS_SETTLE_DELAY_ENV_VAR)
    if configured_value is None or configured_value == "":
        return DEFAULT_SETTLE_DELAY_SECONDS
    try:
        parsed_value = float(configured_value)
    except ValueError as error:
        raise ValueError(
            f"{GHAS_SETTLE_DELAY_ENV_VAR} must be a number, got '{configured_value}'."
        ) from error
    if parsed_value < 0:
        raise ValueError(f"{GHAS_SETTLE_DELAY_ENV_VAR} must not be negative.")
    return parsed_value


def environment_proxy_for(url: str) -> str | None:
    """Return the environment proxy for ``url``, honoring ``NO_PROXY``."""
    parts = urlsplit(url)
    if not parts.hostname or proxy_bypass(parts.hostname):
        return None
    return getproxies().get(parts.scheme)


def _parse_retry_after_seconds(response: httpx.Response) -> float | None:
    """Parse Retry-After header as seconds if present and valid."""
    retry_after = response.headers.get("Retry-After")
    if retry_after is None:
        return None
    try:
        parsed_value = float(retry_after)
    except ValueError:
        return None
    if parsed_value < 0:
        return None
    return parsed_value


def rate_limit_wait_seconds(response: httpx.Response, *, now: float) -> float | None:
    """Return how long to wait before resending, or None if not rate limited."""
    if response.status_code not in {403, 429}:
        return None
    retry_after_seconds = _parse_retry_after_seconds(response)
    if retry_after_seconds is not None:
        return max(retry_after_seconds, MIN_RATE_LIMIT_WAIT_SECONDS)
    if response.headers.get("X-RateLimit-Remaining") != "0":
        return None
    try:
        reset_at = float(response.headers.get("X-RateLimit-Reset", ""))
    except ValueError:
        return MIN_RATE_LIMIT_WAIT_SECONDS
    return max(reset_at - now, MIN_RATE_LIMIT_WAIT_SECONDS)


def _sleep_for_rate_limit(seconds: float) -> None:
    """Sleep helper for rate-limit waits (wrapped for deterministic tests)."""
    time.sleep(seconds)


class RateLimitWaitTransport(httpx.BaseTransport):
    """Transport that waits out GitHub rate-limit windows and resends."""

    def __init__(
        self,
        transport: httpx.BaseTransport,
        *,
        max_waits: int = DEFAULT_MAX_RATE_LIMIT_WAITS,
        owns_transport: bool = True,
    ) -> None:
        self._transport = transport
        self._max_waits = max_waits
        self._owns_transport = owns_transport
        self._closed = False

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        waits = 0
        while True:
            response = self._transport.handle_request(request)
            wait_seconds = rate_limit_wait_seconds(response, now=time.time())
            if wait_seconds is None or waits >= self._max_waits:
                return response
            waits += 1
            response.close()
            logger.warning(
                "GitHub rate limit reached for %s %s; waiting %.0fs (wait %d/%d).",
                request.method,
                request.url.path,
                wait_seconds,
                waits,
                self._max_waits,
            )
            _sleep_for_rate_limit(wait_seconds)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_transport:
            self._transport.close()


class GitHubSession:
    """Authenticated REST and GraphQL clients cached per access token.

    The pair is rebuilt whenever a call supplies a token different from the
    one the cached clients were built with. Pass ``transport`` to route every
    request through a custom base transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        api_url: str | None = None,
        graphql_url: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        settle_delay_seconds: float | None = None,
        max_rate_limit_waits: int = DEFAULT_MAX_RATE_LIMIT_WAITS,
        trust_env: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_url = (api_url or resolve_api_url()).rstrip("/")
        self.graphql_url = graphql_url or resolve_graphql_url(self.api_url)
        self.timeout_seconds = timeout_seconds
        self.settle_delay_seconds = (
            resolve_settle_delay_seconds()
            if settle_delay_seconds is None
            else settle_delay_seconds
        )
        self._max_rate_limit_waits = max_rate_limit_waits
        self._trust_env = trust_env
        self._transport = transport
        self._lock = threading.Lock()
        self._token: str | None = None
        self._rest_client: httpx.Client | None = None
        self._graphql_client: httpx.Client | None = None

    def __enter__(self) -> GitHubSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    @property
    def token(self) -> str | None:
        return self._token

    def ensure_clients(self, token: str) -> tuple[httpx.Client, httpx.Client]:
        """Return ``(rest_client, graphql_client)`` authenticated with ``token``."""
        with self._lock:
            if (
                self._rest_client is not None
                and self._graphql_client is not None
                and token == self._token
            ):
                return self._rest_client, self._graphql_client

            if not token:
                raise ClientInitError("Missing GitHub token; cannot build API clients.")

            self._close_clients()
            try:
                rest_client, graphql_client = self._build_clients(token)
            except (OSError, ValueError, httpx.InvalidURL) as error:
                raise ClientInitError(f"Failed to build GitHub API clients: {error}") from error

            logger.debug("Built GitHub API clients for %s.", self.api_url)
            self._token = token
            self._rest_client = rest_client
            self._graphql_client = graphql_client
            return rest_client, graphql_client

    def rest_client(self, token: str) -> httpx.Client:
        return self.ensure_clients(token)[0]

    def graphql_client(self, token: str) -> httpx.Client:
        return self.ensure_clients(token)[1]

    def close(self) -> None:
        """Close any cached clients."""
        with self._lock:
            self._close_clients()
            self._token = None

    def _build_clients(self, token: str) -> tuple[httpx.Client, httpx.Client]:
        authorization = {"Authorization": f"Bearer {token}"}
        rest_client = httpx.Client(
            base_url=self.api_url,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                **authorization,
            },
            timeout=self.timeout_seconds,
            transport=self._build_transport(self.api_url),
            follow_redirects=True,
            trust_env=False,
        )
        graphql_client = httpx.Client(
            headers=authorization,
            timeout=self.timeout_seconds,
            transport=self._build_transport(self.graphql_url),
            trust_env=False,
        )
        return rest_client, graphql_client

    def _build_transport(self, url: str) -> RateLimitWaitTransport:
        if self._transport is not None:
            return RateLimitWaitTransport(
                self._transport,
                max_waits=self._max_rate_limit_waits,
                owns_transport=False,
            )
        # Env proxies belong on the base transport; client-level mounts skip the wait.
        proxy = environment_proxy_for(url) if self._trust_env else None
        return RateLimitWaitTransport(
            httpx.HTTPTransport(trust_env=self._trust_env, proxy=proxy),
            max_waits=self._max_rate_limit_waits,
        )

    def _close_clients(self) -> None:
        for client in (self._rest_client, self._graphql_client):
            if client is not None:
                client.close()
        self._rest_client = None
        self._graphql_client = None


def classify_response(
    response: httpx.Response,
    *,
    ignorable_statuses: Collection[int] = (),
    not_found: bool = False,
) -> ProviderOutcome:
    """Decide once whether a response is success, ignorable, not-found, or fatal."""
    status_code = response.status_code
    if response.is_success:
        kind = OutcomeKind.SUCCESS
    elif status_code in ignorable_statuses:
        kind = OutcomeKind.IGNORABLE
    elif not_found and status_code == 404:
        kind = OutcomeKind.NOT_FOUND
    else:
        kind = OutcomeKind.FATAL
    return ProviderOutcome(kind=kind, status_code=status_code, response=response)


def _provider_message(response: httpx.Response) -> str | None:
    """Extract GitHub's ``message`` field from an error body, if any."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return None


def _raise_http_error(response: httpx.Response, endpoint: str) -> NoReturn:
    """Raise a typed error for a non-success GitHub API response."""
    message = f"GitHub API request failed with status {response.status_code} for '{endpoint}'"
    provider_message = _provider_message(response)
    if provider_message:
        message = f"{message}: {provider_message}"
    raise GitHubApiError(
        f"{message}.",
        status_code=response.status_code,
        endpoint=endpoint,
    )


def _send(
    client: httpx.Client,
    method: str,
    endpoint: str,
    *,
    json: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
) -> httpx.Response:
    """Send one request, mapping network failures to GitHubTransportError."""
    try:
        return client.request(method, endpoint, json=json, params=params)
    except httpx.TransportError as error:
        raise GitHubTransportError(
            f"Network error calling GitHub '{endpoint}': {error}",
            endpoint=endpoint,
        ) from error


def request(
    client: httpx.Client,
    method: str,
    endpoint: str,
    *,
    json: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
    ignorable_statuses: Collection[int] = (),
    not_found_error: type[GitHubNotFoundError] | None = None,
) -> ProviderOutcome:
    """Perform a REST call and route the response through the classifier.

    Returns the outcome for success and ignorable responses; raises
    ``not_found_error`` for 404 when given, and GitHubApiError otherwise.
    """
    response = _send(client, method, endpoint, json=json, params=params)
    outcome = classify_response(
        response,
        ignorable_statuses=ignorable_statuses,
        not_found=not_found_error is not None,
    )
    if outcome.kind is OutcomeKind.NOT_FOUND and not_found_error is not None:
        raise not_found_error(
            f"GitHub resource not found for '{endpoint}'.",
            status_code=outcome.status_code,
            endpoint=endpoint,
        )
    if outcome.kind is OutcomeKind.FATAL:
        _raise_http_error(response, endpoint)
    if outcome.kind is OutcomeKind.IGNORABLE:
        logger.debug(
            "Ignoring status %s for %s %s: %s",
            outcome.status_code,
            method,
            endpoint,
            _provider_message(response) or "no message",
        )
    return outcome


def request_json(
    client: httpx.Client,
    endpoint: str,
    *,
    params: dict[str, Any] | None = None,
    not_found_error: type[GitHubNotFoundError] | None = None,
) -> dict[str, Any]:
    """Perform a GET request that returns a JSON object."""
    outcome = request(client, "GET", endpoint, params=params, not_found_error=not_found_error)
    return ensure_mapping(outcome.response.json(), context=endpoint)


def next_page_number(response: httpx.Response) -> int | None:
    """Return the page number of the ``rel="next"`` Link, if any."""
    next_link = response.links.get("next")
    if not next_link or "url" not in next_link:
        return None
    page_values = parse_qs(urlsplit(next_link["url"]).query).get("page")
    if not page_values:
        return None
    try:
        return int(page_values[0])
    except ValueError:
        return None


def request_json_page(
    client: httpx.Client,
    endpoint: str,
    *,
    params: dict[str, Any],
    page: PageToken,
) -> tuple[Any, int | None]:
    """Fetch one REST page, returning the JSON body and the next page number."""
    page_params = dict(params)
    if page:
        page_params["page"] = page
    outcome = request(client, "GET", endpoint, params=page_params)
    return outcome.response.json(), next_page_number(outcome.response)


def execute_graphql(
    client: httpx.Client,
    url: str,
    *,
    query: str,
    variables: dict[str, Any] | None = None,
    not_found_error: type[GitHubNotFoundError] = GitHubNotFoundError,
) -> dict[str, Any]:
    """Run a GraphQL query or mutation and return its ``data`` object.

    An ``errors`` payload raises ``not_found_error`` when any entry has type
    ``NOT_FOUND`` and GitHubGraphQLError otherwise.
    """
    payload: dict[str, Any] = {"query": query}
    if variables:
        payload["variables"] = variables
    outcome = request(client, "POST", url, json=payload)
    body = ensure_mapping(outcome.response.json(), context=url)
    errors = body.get("errors")
    if errors:
        messages = [
            error.get("message", "unknown error") if isinstance(error, dict) else str(error)
            for error in errors
        ]
        if any(isinstance(error, dict) and error.get("type") == "NOT_FOUND" for error in errors):
            raise not_found_error(
                f"GitHub resource not found: {'; '.join(messages)}",
                status_code=404,
                endpoint=url,
            )
        raise GitHubGraphQLError(
            f"GitHub GraphQL request failed: {'; '.join(messages)}",
            status_code=outcome.status_code,
            endpoint=url,
        )
    return ensure_mapping(body.get("data"), context=url)


def graphql_connection_page(
    connection: object,
    *,
    endpoint: str,
) -> tuple[list[dict[str, Any]], str | None]:
    """Split a GraphQL connection into its nodes and the next cursor."""
    mapping = ensure_mapping(connection, context=endpoint)
    nodes = require_list(mapping, key="nodes", endpoint=endpoint)
    page_info = require_object(mapping, key="pageInfo", endpoint=endpoint)
    if not page_info.get("hasNextPage"):
        return nodes, None
    end_cursor = page_info.get("endCursor")
    return nodes, end_cursor if isinstance(end_cursor, str) else None


class PagedSequence(Generic[ItemT]):
    """Lazy, restartable view over a paginated collection.

    Each iteration starts again from the first page and stops when a page has
    no next token (None, zero, or empty).
    """

    def __init__(self, fetch_page: Callable[[PageToken], Page[ItemT]]) -> None:
        self._fetch_page = fetch_page

    def pages(self) -> Iterator[Page[ItemT]]:
        token: PageToken = None
        while True:
            page = self._fetch_page(token)
            yield page
            if not page.next_token:
                return
            token = page.next_token

    def __iter__(self) -> Iterator[ItemT]:
        for page in self.pages():
            yield from page.items


def collect_all(fetch_page: Callable[[PageToken], Page[ItemT]]) -> list[ItemT]:
    """Fetch every page and return all items in provider order."""
    return list(PagedSequence(fetch_page))


def parse_repo_full_name(repo_full_name: str) -> tuple[str, str]:
    """Parse and validate repository input in owner/repo format."""
    owner, separator, repo = repo_full_name.strip().partition("/")
    if not separator or not owner or not repo or "/" in repo:
        raise GitHubInputError(
            f"Invalid repo '{repo_full_name}'. Expected format is owner/repo."
        )
    return owner, repo


def validate_issue_number(issue_number: int) -> int:
    """Validate and normalize issue number input."""
    if issue_number <= 0:
        raise GitHubInputError(
            f"Invalid issue number '{issue_number}'. Expected a positive integer."
        )
    return issue_number


def get_github_token(explicit_token: str | None = None) -> str:
    """Return a GitHub token and fail fast if missing."""
    token, _source = get_github_token_with_source(explicit_token)
    return token


def get_github_token_with_source(explicit_token: str | None = None) -> tuple[str, str]:
    """Return the token value together with where it was found."""
    if explicit_token:
        return explicit_token, "--token"

    load_env_file()

    github_token = os.getenv("GITHUB_TOKEN")
    if github_token:
        return github_token, "GITHUB_TOKEN"

    gh_token = os.getenv("GH_TOKEN")
    if gh_token:
        return gh_token, "GH_TOKEN"

    message = "Missing GitHub token. Pass --token or set GITHUB_TOKEN (preferred) or GH_TOKEN."
    raise GitHubAuthError(message)
