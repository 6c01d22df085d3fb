"""GHAS and repository operations used by the migration commands.

Every function takes an explicit session and access token. The session
rebuilds its clients when the token changes, so callers can switch between
source and target credentials freely.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from gei_migration_helper.github_client import (
    BranchProtectionDeletionError,
    BranchProtectionRule,
    GitHubApiError,
    GitHubError,
    GitHubSession,
    Issue,
    IssueNotFoundError,
    OutcomeKind,
    Page,
    PageToken,
    Repository,
    RepositoryNotFoundError,
    ScanningAnalysis,
    Workflow,
    collect_all,
    ensure_mapping,
    execute_graphql,
    graphql_connection_page,
    request,
    request_json,
    request_json_page,
    require_list,
    require_str,
    validate_issue_number,
)
from gei_migration_helper.schema import (
    IssueRequest,
    OrganizationSecurityDefaults,
    SecurityAndAnalysisUpdate,
    SecurityStatus,
    Visibility,
    WorkflowState,
)

logger = logging.getLogger(__name__)

REPOSITORY_PAGE_SIZE = 10
WORKFLOW_PAGE_SIZE = 10
GRAPHQL_PAGE_SIZE = 100

BRANCH_PROTECTION_RULES_QUERY = """
query($owner: String!, $name: String!, $first: Int!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    branchProtectionRules(first: $first, after: $cursor) {
      nodes { id pattern }
      pageInfo { endCursor hasNextPage }
    }
  }
}
"""

DELETE_BRANCH_PROTECTION_RULE_MUTATION = """
mutation($input: DeleteBranchProtectionRuleInput!) {
  deleteBranchProtectionRule(input: $input) { clientMutationId }
}
"""

ENTERPRISE_ORGANIZATIONS_QUERY = """
query($slug: String!, $first: Int!, $cursor: String) {
  enterprise(slug: $slug) {
    organizations(first: $first, after: $cursor) {
      nodes { login }
      pageInfo { endCursor hasNextPage }
    }
  }
}
"""


def _sleep_for_settle(seconds: float) -> None:
    """Sleep helper for the settings settle delay (wrapped for deterministic tests)."""
    time.sleep(seconds)


def fetch_authenticated_user_login(*, session: GitHubSession, token: str) -> str:
    """Fetch authenticated GitHub user login for token validation."""
    endpoint = "/user"
    payload = request_json(session.rest_client(token), endpoint)
    return require_str(payload, key="login", endpoint=endpoint)


def get_organizations_in_enterprise(
    *, session: GitHubSession, token: str, enterprise: str
) -> list[str]:
    """List the logins of every organization in an enterprise."""
    graphql_client = session.graphql_client(token)
    endpoint = session.graphql_url

    def fetch_page(cursor: PageToken) -> Page[str]:
        data = execute_graphql(
            graphql_client,
            endpoint,
            query=ENTERPRISE_ORGANIZATIONS_QUERY,
            variables={"slug": enterprise, "first": GRAPHQL_PAGE_SIZE, "cursor": cursor},
        )
        enterprise_payload = ensure_mapping(data.get("enterprise"), context=endpoint)
        connection = enterprise_payload.get("organizations")
        nodes, next_cursor = graphql_connection_page(connection, endpoint=endpoint)
        logins = tuple(require_str(node, key="login", endpoint=endpoint) for node in nodes)
        return Page(items=logins, next_token=next_cursor)

    return collect_all(fetch_page)


def change_ghas_org_settings(
    *, session: GitHubSession, token: str, organization: str, activate: bool
) -> None:
    """Set the organization's GHAS defaults for new repositories."""
    defaults = OrganizationSecurityDefaults.uniform(activate)
    request(
        session.rest_client(token),
        "PATCH",
        f"/orgs/{organization}",
        json=defaults.model_dump(),
    )


def change_ghas_repo_settings(
    *,
    session: GitHubSession,
    token: str,
    organization: str,
    repository: Repository,
    ghas: SecurityStatus | str,
    secret_scanning: SecurityStatus | str,
    push_protection: SecurityStatus | str,
) -> None:
    """Apply advanced security, secret scanning, and push protection statuses.

    A 422 response is treated as success: it is what GitHub returns when the
    repository is already in the requested state. After GitHub answers, this
    waits ``session.settle_delay_seconds`` so that follow-up reads observe
    the new settings.
    """
    update = SecurityAndAnalysisUpdate.for_visibility(
        repository.visibility,
        advanced_security=ghas,
        secret_scanning=secret_scanning,
        push_protection=push_protection,
    )
    endpoint = f"/repos/{organization}/{repository.name}"
    try:
        request(
            session.rest_client(token),
            "PATCH",
            endpoint,
            json=update.to_request_body(),
            ignorable_statuses=(422,),
        )
    except GitHubApiError:
        _wait_for_settings_to_settle(session)
        raise
    _wait_for_settings_to_settle(session)


def _wait_for_settings_to_settle(session: GitHubSession) -> None:
    if session.settle_delay_seconds <= 0:
        return
    logger.debug("Waiting %.0f seconds for changes to apply...", session.settle_delay_seconds)
    _sleep_for_settle(session.settle_delay_seconds)


def get_repository(
    *, session: GitHubSession, token: str, organization: str, name: str
) -> Repository:
    """Fetch one repository; raises RepositoryNotFoundError on 404."""
    endpoint = f"/repos/{organization}/{name}"
    payload = request_json(
        session.rest_client(token),
        endpoint,
        not_found_error=RepositoryNotFoundError,
    )
    return Repository.from_payload(payload, endpoint=endpoint)


def get_repositories(*, session: GitHubSession, token: str, organization: str) -> list[Repository]:
    """List every repository of an organization."""
    rest_client = session.rest_client(token)
    endpoint = f"/orgs/{organization}/repos"

    def fetch_page(page: PageToken) -> Page[Repository]:
        payload, next_page = request_json_page(
            rest_client,
            endpoint,
            params={"type": "all", "per_page": REPOSITORY_PAGE_SIZE},
            page=page,
        )
        if not isinstance(payload, list):
            raise GitHubApiError(
                "Expected JSON array in GitHub response.",
                status_code=500,
                endpoint=endpoint,
            )
        rows = [ensure_mapping(row, context=endpoint) for row in payload]
        return Page(
            items=tuple(Repository.from_payload(row, endpoint=endpoint) for row in rows),
            next_token=next_page,
        )

    return collect_all(fetch_page)


def change_repository_visibility(
    *,
    session: GitHubSession,
    token: str,
    organization: str,
    repository: str,
    visibility: Visibility | str,
) -> None:
    """Set repository visibility; 422 means it already has that visibility."""
    outcome = request(
        session.rest_client(token),
        "PATCH",
        f"/repos/{organization}/{repository}",
        json={"visibility": Visibility(visibility).value},
        ignorable_statuses=(422,),
    )
    if outcome.kind is OutcomeKind.IGNORABLE:
        logger.info("Repository %s/%s is already set to %s.", organization, repository, visibility)


def get_workflows(
    *, session: GitHubSession, token: str, organization: str, repository: str
) -> list[Workflow]:
    """List every workflow of a repository."""
    rest_client = session.rest_client(token)
    endpoint = f"/repos/{organization}/{repository}/actions/workflows"

    def fetch_page(page: PageToken) -> Page[Workflow]:
        payload, next_page = request_json_page(
            rest_client,
            endpoint,
            params={"per_page": WORKFLOW_PAGE_SIZE},
            page=page,
        )
        rows = require_list(
            ensure_mapping(payload, context=endpoint), key="workflows", endpoint=endpoint
        )
        return Page(
            items=tuple(Workflow.from_payload(row, endpoint=endpoint) for row in rows),
            next_token=next_page,
        )

    return collect_all(fetch_page)


def get_active_workflows(
    *, session: GitHubSession, token: str, organization: str, repository: str
) -> list[Workflow]:
    """List the workflows of a repository whose state is ``active``."""
    workflows = get_workflows(
        session=session, token=token, organization=organization, repository=repository
    )
    return [workflow for workflow in workflows if workflow.state == WorkflowState.ACTIVE]


def disable_workflows(
    *,
    session: GitHubSession,
    token: str,
    organization: str,
    repository: str,
    workflows: Sequence[Workflow],
) -> None:
    """Disable each workflow; provider errors are logged and skipped."""
    rest_client = session.rest_client(token)
    for workflow in workflows:
        endpoint = f"/repos/{organization}/{repository}/actions/workflows/{workflow.id}/disable"
        try:
            request(rest_client, "PUT", endpoint)
        except GitHubApiError as error:
            # TODO: narrow to the statuses seen during migrations once they are catalogued.
            logger.debug(
                "Failed to disable workflow %s - will not stop migration: %s",
                workflow.name,
                error,
            )


def enable_workflows(
    *,
    session: GitHubSession,
    token: str,
    organization: str,
    repository: str,
    workflows: Sequence[Workflow],
) -> None:
    """Enable each workflow; 422 is skipped, other errors propagate."""
    rest_client = session.rest_client(token)
    for workflow in workflows:
        request(
            rest_client,
            "PUT",
            f"/repos/{organization}/{repository}/actions/workflows/{workflow.id}/enable",
            ignorable_statuses=(422,),
        )


def get_code_scanning_analyses(
    *,
    session: GitHubSession,
    token: str,
    organization: str,
    repository: str,
    default_branch: str,
) -> list[ScanningAnalysis]:
    """List code scanning analyses for a branch; empty when code scanning is off."""
    endpoint = f"/repos/{organization}/{repository}/code-scanning/analyses"
    outcome = request(
        session.rest_client(token),
        "GET",
        endpoint,
        params={"ref": default_branch},
        ignorable_statuses=(404,),
    )
    if outcome.kind is OutcomeKind.IGNORABLE:
        return []
    payload = outcome.response.json()
    if not isinstance(payload, list):
        raise GitHubApiError(
            "Expected JSON array in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return [
        ScanningAnalysis.from_payload(ensure_mapping(row, context=endpoint), endpoint=endpoint)
        for row in payload
    ]


def archive_repository(
    *, session: GitHubSession, token: str, organization: str, repository: str
) -> None:
    change_archive_repository(
        session=session,
        token=token,
        organization=organization,
        repository=repository,
        archive=True,
    )


def unarchive_repository(
    *, session: GitHubSession, token: str, organization: str, repository: str
) -> None:
    change_archive_repository(
        session=session,
        token=token,
        organization=organization,
        repository=repository,
        archive=False,
    )


def change_archive_repository(
    *,
    session: GitHubSession,
    token: str,
    organization: str,
    repository: str,
    archive: bool,
) -> None:
    """Set the archived flag; 403 means the repository is already archived."""
    request(
        session.rest_client(token),
        "PATCH",
        f"/repos/{organization}/{repository}",
        json={"archived": archive},
        ignorable_statuses=(403,),
    )


def create_repository(
    *, session: GitHubSession, token: str, organization: str, repository: str
) -> None:
    """Create an empty repository; 422 means it already exists."""
    outcome = request(
        session.rest_client(token),
        "POST",
        f"/orgs/{organization}/repos",
        json={"name": repository},
        ignorable_statuses=(422,),
    )
    if outcome.kind is OutcomeKind.IGNORABLE:
        logger.info("Repository %s/%s already exists.", organization, repository)


def create_issue(
    *,
    session: GitHubSession,
    token: str,
    organization: str,
    repository: str,
    title: str,
    body: str,
) -> Issue:
    endpoint = f"/repos/{organization}/{repository}/issues"
    issue_request = IssueRequest(title=title, body=body)
    outcome = request(
        session.rest_client(token),
        "POST",
        endpoint,
        json=issue_request.model_dump(),
    )
    payload = ensure_mapping(outcome.response.json(), context=endpoint)
    return Issue.from_payload(payload, endpoint=endpoint)


def get_issue(
    *,
    session: GitHubSession,
    token: str,
    organization: str,
    repository: str,
    issue_number: int,
) -> Issue:
    """Fetch one issue; raises IssueNotFoundError on 404."""
    normalized_number = validate_issue_number(issue_number)
    endpoint = f"/repos/{organization}/{repository}/issues/{normalized_number}"
    payload = request_json(
        session.rest_client(token),
        endpoint,
        not_found_error=IssueNotFoundError,
    )
    return Issue.from_payload(payload, endpoint=endpoint)


def get_branch_protection_rules(
    *, session: GitHubSession, token: str, organization: str, repository: str
) -> list[BranchProtectionRule]:
    """List every branch protection rule of a repository."""
    graphql_client = session.graphql_client(token)
    endpoint = session.graphql_url

    def fetch_page(cursor: PageToken) -> Page[BranchProtectionRule]:
        data = execute_graphql(
            graphql_client,
            endpoint,
            query=BRANCH_PROTECTION_RULES_QUERY,
            variables={
                "owner": organization,
                "name": repository,
                "first": GRAPHQL_PAGE_SIZE,
                "cursor": cursor,
            },
            not_found_error=RepositoryNotFoundError,
        )
        repository_payload = ensure_mapping(data.get("repository"), context=endpoint)
        connection = repository_payload.get("branchProtectionRules")
        nodes, next_cursor = graphql_connection_page(connection, endpoint=endpoint)
        rules = tuple(
            BranchProtectionRule(
                id=require_str(node, key="id", endpoint=endpoint),
                pattern=node.get("pattern") if isinstance(node.get("pattern"), str) else None,
            )
            for node in nodes
        )
        return Page(items=rules, next_token=next_cursor)

    return collect_all(fetch_page)


def delete_branch_protections(
    *, session: GitHubSession, token: str, organization: str, repository: str
) -> int:
    """Delete every branch protection rule of a repository.

    Returns the number of rules deleted. The first failed deletion raises
    BranchProtectionDeletionError; rules deleted before it stay deleted and
    the remaining rules are left in place.
    """
    rules = get_branch_protection_rules(
        session=session, token=token, organization=organization, repository=repository
    )
    graphql_client = session.graphql_client(token)
    for deleted_count, rule in enumerate(rules):
        try:
            execute_graphql(
                graphql_client,
                session.graphql_url,
                query=DELETE_BRANCH_PROTECTION_RULE_MUTATION,
                variables={"input": {"branchProtectionRuleId": rule.id}},
            )
        except GitHubError as error:
            raise BranchProtectionDeletionError(
                f"Error deleting branch protection rules for {organization}/{repository} "
                f"after {deleted_count} of {len(rules)}: {error}",
                rule_id=rule.id,
            ) from error
        logger.debug("Deleted branch protection rule %s (%s).", rule.id, rule.pattern)
    return len(rules)
