"""Typer CLI for bulk GHAS changes during GitHub Enterprise Importer migrations."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

import httpx
import typer

from gei_migration_helper.github_client import (
    DEFAULT_TIMEOUT_SECONDS,
    GitHubAuthError,
    GitHubError,
    GitHubSession,
    Repository,
    get_github_token_with_source,
    load_env_file,
    parse_repo_full_name,
)
from gei_migration_helper.operations import (
    change_archive_repository,
    change_ghas_org_settings,
    change_ghas_repo_settings,
    change_repository_visibility,
    create_issue,
    create_repository,
    delete_branch_protections,
    disable_workflows,
    enable_workflows,
    fetch_authenticated_user_login,
    get_active_workflows,
    get_code_scanning_analyses,
    get_issue,
    get_organizations_in_enterprise,
    get_repositories,
    get_repository,
    get_workflows,
)
from gei_migration_helper.output import Status, echo_status
from gei_migration_helper.schema import SecurityStatus, Visibility

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

app = typer.Typer(help="Bulk-apply GitHub Advanced Security settings across organizations.")

TokenOption = Annotated[
    str | None,
    typer.Option(help="GitHub access token. Defaults to GITHUB_TOKEN or GH_TOKEN."),
]
OrganizationOption = Annotated[str, typer.Option(help="Organization login.")]
RepositoryOption = Annotated[
    str | None,
    typer.Option(help="Single repository name. Defaults to every repository in the organization."),
]


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def build_session(
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    trust_env: bool = True,
) -> GitHubSession:
    """Build the session shared by every call of one command run."""
    return GitHubSession(timeout_seconds=timeout_seconds, trust_env=trust_env)


@contextmanager
def _exit_on_failure(action: str) -> Iterator[None]:
    """Print one status line and exit with code 1 on unrecoverable errors."""
    try:
        yield
    except (GitHubError, ValueError) as error:
        echo_status(Status.FAILED, f"{action} failed: {error}")
        raise typer.Exit(code=1) from error
    except httpx.HTTPError as error:
        echo_status(Status.FAILED, f"{action} failed: network error ({error}).")
        raise typer.Exit(code=1) from error


def _target_repositories(
    session: GitHubSession,
    token: str,
    organization: str,
    repository: str | None,
) -> list[Repository]:
    if repository is not None:
        return [
            get_repository(session=session, token=token, organization=organization, name=repository)
        ]
    echo_status(Status.PENDING, f"Fetching repositories for organization: {organization}")
    repositories = get_repositories(session=session, token=token, organization=organization)
    echo_status(Status.DONE, f"Found {len(repositories)} repositories")
    return repositories


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Load ./.env and configure logging for every command."""
    load_env_file()
    configure_logging(verbose)


@app.command("auth-check")
def auth_check_command(
    token: TokenOption = None,
    timeout_seconds: Annotated[
        int, typer.Option(help="GitHub API timeout in seconds for the validation call.")
    ] = 20,
    trust_env: Annotated[
        bool,
        typer.Option(
            "--trust-env/--no-trust-env",
            help="Use proxy/SSL environment variables from the current shell.",
        ),
    ] = True,
) -> None:
    """Validate GitHub token setup."""
    try:
        resolved_token, token_source = get_github_token_with_source(token)
    except GitHubAuthError as error:
        typer.echo(f"GitHub auth check failed: {error}")
        raise typer.Exit(code=1) from error

    typer.echo(f"Token detected in {token_source}.")

    with (
        _exit_on_failure("GitHub auth check"),
        build_session(timeout_seconds=timeout_seconds, trust_env=trust_env) as session,
    ):
        login = fetch_authenticated_user_login(session=session, token=resolved_token)
        typer.echo(f"Authenticated as GitHub user '{login}'.")

    typer.echo("GitHub token setup is valid.")


@app.command("activate-ghas-features")
def activate_ghas_features_command(
    enterprise: Annotated[
        str | None, typer.Option(help="Enterprise slug; every organization in it is updated.")
    ] = None,
    organization: Annotated[
        str | None, typer.Option(help="Update only this organization.")
    ] = None,
    token: TokenOption = None,
) -> None:
    """Enable GHAS defaults for new repositories in one organization or a whole enterprise."""
    if enterprise is None and organization is None:
        raise typer.BadParameter("Provide --enterprise or --organization.")

    with _exit_on_failure("Activating GHAS features"), build_session() as session:
        resolved_token = get_github_token_with_source(token)[0]
        if organization is not None:
            organizations = [organization]
        else:
            echo_status(Status.PENDING, "Fetching organizations from enterprise...")
            organizations = get_organizations_in_enterprise(
                session=session, token=resolved_token, enterprise=enterprise or ""
            )
            echo_status(Status.DONE, f"Found {len(organizations)} organizations")

        for organization_login in organizations:
            echo_status(
                Status.PENDING,
                f"Activating GHAS settings for organization: {organization_login}",
            )
            change_ghas_org_settings(
                session=session,
                token=resolved_token,
                organization=organization_login,
                activate=True,
            )
            echo_status(Status.DONE, "Done")


@app.command("change-ghas-settings")
def change_ghas_settings_command(
    organization: OrganizationOption,
    repository: RepositoryOption = None,
    advanced_security: Annotated[
        SecurityStatus, typer.Option(help="Advanced security status (ignored for public repos).")
    ] = SecurityStatus.ENABLED,
    secret_scanning: Annotated[
        SecurityStatus, typer.Option(help="Secret scanning status.")
    ] = SecurityStatus.ENABLED,
    push_protection: Annotated[
        SecurityStatus, typer.Option(help="Secret scanning push protection status.")
    ] = SecurityStatus.ENABLED,
    include_archived: Annotated[
        bool,
        typer.Option(
            "--include-archived/--skip-archived",
            help="Archived repositories are read-only, so they are skipped by default.",
        ),
    ] = False,
    token: TokenOption = None,
) -> None:
    """Apply GHAS, secret scanning, and push protection statuses to repositories."""
    with _exit_on_failure("Changing GHAS settings"), build_session() as session:
        resolved_token = get_github_token_with_source(token)[0]
        for target in _target_repositories(session, resolved_token, organization, repository):
            if target.archived and not include_archived:
                echo_status(Status.SKIPPED, f"Skipping archived repository: {target.full_name}")
                continue
            echo_status(Status.PENDING, f"Changing GHAS settings for: {target.full_name}")
            change_ghas_repo_settings(
                session=session,
                token=resolved_token,
                organization=organization,
                repository=target,
                ghas=advanced_security,
                secret_scanning=secret_scanning,
                push_protection=push_protection,
            )
            echo_status(Status.DONE, "Done")


@app.command("delete-branch-protections")
def delete_branch_protections_command(
    organization: OrganizationOption,
    repository: RepositoryOption = None,
    token: TokenOption = None,
) -> None:
    """Delete every branch protection rule of the targeted repositories."""
    with _exit_on_failure("Deleting branch protections"), build_session() as session:
        resolved_token = get_github_token_with_source(token)[0]
        for target in _target_repositories(session, resolved_token, organization, repository):
            echo_status(Status.PENDING, f"Deleting branch protections for: {target.full_name}")
            deleted = delete_branch_protections(
                session=session,
                token=resolved_token,
                organization=organization,
                repository=target.name,
            )
            echo_status(Status.DONE, f"Deleted {deleted} branch protection rules")


@app.command("disable-workflows")
def disable_workflows_command(
    organization: OrganizationOption,
    repository: RepositoryOption = None,
    token: TokenOption = None,
) -> None:
    """Disable every active workflow of the targeted repositories."""
    with _exit_on_failure("Disabling workflows"), build_session() as session:
        resolved_token = get_github_token_with_source(token)[0]
        for target in _target_repositories(session, resolved_token, organization, repository):
            echo_status(Status.PENDING, f"Disabling workflows for: {target.full_name}")
            workflows = get_active_workflows(
                session=session,
                token=resolved_token,
                organization=organization,
                repository=target.name,
            )
            disable_workflows(
                session=session,
                token=resolved_token,
                organization=organization,
                repository=target.name,
                workflows=workflows,
            )
            echo_status(Status.DONE, f"Processed {len(workflows)} workflows")


@app.command("enable-workflows")
def enable_workflows_command(
    organization: OrganizationOption,
    repository: RepositoryOption = None,
    token: TokenOption = None,
) -> None:
    """Enable every workflow of the targeted repositories."""
    with _exit_on_failure("Enabling workflows"), build_session() as session:
        resolved_token = get_github_token_with_source(token)[0]
        for target in _target_repositories(session, resolved_token, organization, repository):
            echo_status(Status.PENDING, f"Enabling workflows for: {target.full_name}")
            workflows = get_workflows(
                session=session,
                token=resolved_token,
                organization=organization,
                repository=target.name,
            )
            enable_workflows(
                session=session,
                token=resolved_token,
                organization=organization,
                repository=target.name,
                workflows=workflows,
            )
            echo_status(Status.DONE, f"Processed {len(workflows)} workflows")


@app.command("change-visibility")
def change_visibility_command(
    organization: OrganizationOption,
    repository: Annotated[str, typer.Option(help="Repository name.")],
    visibility: Annotated[Visibility, typer.Option(help="Target visibility.")],
    token: TokenOption = None,
) -> None:
    """Change the visibility of one repository."""
    with _exit_on_failure("Changing visibility"), build_session() as session:
        resolved_token = get_github_token_with_source(token)[0]
        echo_status(
            Status.PENDING,
            f"Changing visibility of {organization}/{repository} to {visibility.value}",
        )
        change_repository_visibility(
            session=session,
            token=resolved_token,
            organization=organization,
            repository=repository,
            visibility=visibility,
        )
        echo_status(Status.DONE, "Done")


@app.command("archive-repositories")
def archive_repositories_command(
    organization: OrganizationOption,
    repository: RepositoryOption = None,
    unarchive: Annotated[
        bool, typer.Option("--unarchive", help="Unarchive instead of archiving.")
    ] = False,
    token: TokenOption = None,
) -> None:
    """Archive (or unarchive) the targeted repositories."""
    action = "Unarchiving" if unarchive else "Archiving"
    with _exit_on_failure(f"{action} repositories"), build_session() as session:
        resolved_token = get_github_token_with_source(token)[0]
        for target in _target_repositories(session, resolved_token, organization, repository):
            echo_status(Status.PENDING, f"{action} repository: {target.full_name}")
            change_archive_repository(
                session=session,
                token=resolved_token,
                organization=organization,
                repository=target.name,
                archive=not unarchive,
            )
            echo_status(Status.DONE, "Done")


@app.command("create-repository")
def create_repository_command(
    organization: OrganizationOption,
    repository: Annotated[str, typer.Option(help="Repository name.")],
    token: TokenOption = None,
) -> None:
    """Create an empty repository unless it already exists."""
    with _exit_on_failure("Creating repository"), build_session() as session:
        resolved_token = get_github_token_with_source(token)[0]
        echo_status(Status.PENDING, f"Creating repository: {organization}/{repository}")
        create_repository(
            session=session,
            token=resolved_token,
            organization=organization,
            repository=repository,
        )
        echo_status(Status.DONE, "Done")


@app.command("check-code-scanning")
def check_code_scanning_command(
    organization: OrganizationOption,
    repository: RepositoryOption = None,
    token: TokenOption = None,
) -> None:
    """Report which repositories have code scanning analyses on their default branch."""
    with _exit_on_failure("Checking code scanning"), build_session() as session:
        resolved_token = get_github_token_with_source(token)[0]
        for target in _target_repositories(session, resolved_token, organization, repository):
            if target.default_branch is None:
                echo_status(Status.SKIPPED, f"{target.full_name}: empty repository")
                continue
            analyses = get_code_scanning_analyses(
                session=session,
                token=resolved_token,
                organization=organization,
                repository=target.name,
                default_branch=target.default_branch,
            )
            if analyses:
                echo_status(
                    Status.DONE,
                    f"{target.full_name}: {len(analyses)} code scanning analyses "
                    f"on {target.default_branch}",
                )
            else:
                echo_status(Status.SKIPPED, f"{target.full_name}: no code scanning analyses")


@app.command("create-issue")
def create_issue_command(
    repo: Annotated[str, typer.Option(help="Repository in owner/repo format.")],
    title: Annotated[str, typer.Option(help="Issue title.")],
    body: Annotated[str, typer.Option(help="Issue body.")] = "",
    token: TokenOption = None,
) -> None:
    """Open an issue in a repository."""
    with _exit_on_failure("Creating issue"), build_session() as session:
        owner, name = parse_repo_full_name(repo)
        resolved_token = get_github_token_with_source(token)[0]
        issue = create_issue(
            session=session,
            token=resolved_token,
            organization=owner,
            repository=name,
            title=title,
            body=body,
        )
        echo_status(Status.DONE, f"Created issue #{issue.number}: {issue.html_url}")


@app.command("get-issue")
def get_issue_command(
    repo: Annotated[str, typer.Option(help="Repository in owner/repo format.")],
    number: Annotated[int, typer.Option(help="Issue number.")],
    token: TokenOption = None,
) -> None:
    """Print the title and state of one issue."""
    with _exit_on_failure("Fetching issue"), build_session() as session:
        owner, name = parse_repo_full_name(repo)
        resolved_token = get_github_token_with_source(token)[0]
        issue = get_issue(
            session=session,
            token=resolved_token,
            organization=owner,
            repository=name,
            issue_number=number,
        )
        typer.echo(f"#{issue.number} [{issue.state}] {issue.title}")
