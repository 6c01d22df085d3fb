"""Request payload contracts for GitHub settings changes."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SecurityStatus(StrEnum):
    """Status values accepted by ``security_and_analysis`` settings."""

    ENABLED = "enabled"
    DISABLED = "disabled"


class Visibility(StrEnum):
    """Repository visibility."""

    PUBLIC = "public"
    PRIVATE = "private"
    INTERNAL = "internal"


class WorkflowState(StrEnum):
    """GitHub Actions workflow states."""

    ACTIVE = "active"
    DELETED = "deleted"
    DISABLED_FORK = "disabled_fork"
    DISABLED_INACTIVITY = "disabled_inactivity"
    DISABLED_MANUALLY = "disabled_manually"


class StatusSetting(BaseModel):
    """Single ``{"status": ...}`` toggle."""

    model_config = ConfigDict(extra="forbid")

    status: SecurityStatus


class SecurityAndAnalysisUpdate(BaseModel):
    """Partial ``security_and_analysis`` update for one repository.

    Fields left as None are omitted from the request body.
    """

    model_config = ConfigDict(extra="forbid")

    advanced_security: StatusSetting | None = None
    secret_scanning: StatusSetting | None = None
    secret_scanning_push_protection: StatusSetting | None = None

    @classmethod
    def for_visibility(
        cls,
        visibility: str,
        *,
        advanced_security: SecurityStatus | str,
        secret_scanning: SecurityStatus | str,
        push_protection: SecurityStatus | str,
    ) -> SecurityAndAnalysisUpdate:
        """Build the update, leaving out advanced security for public repositories.

        GitHub always enables advanced security on public repositories and
        rejects any PATCH that sets it.
        """
        return cls(
            advanced_security=(
                None
                if visibility == Visibility.PUBLIC
                else StatusSetting(status=SecurityStatus(advanced_security))
            ),
            secret_scanning=StatusSetting(status=SecurityStatus(secret_scanning)),
            secret_scanning_push_protection=StatusSetting(
                status=SecurityStatus(push_protection)
            ),
        )

    def to_request_body(self) -> dict[str, Any]:
        return {"security_and_analysis": self.model_dump(mode="json", exclude_none=True)}


class OrganizationSecurityDefaults(BaseModel):
    """Organization-level GHAS defaults applied to newly created repositories."""

    model_config = ConfigDict(extra="forbid")

    advanced_security_enabled_for_new_repositories: bool
    secret_scanning_enabled_for_new_repositories: bool
    secret_scanning_push_protection_enabled_for_new_repositories: bool

    @classmethod
    def uniform(cls, enabled: bool) -> OrganizationSecurityDefaults:
        return cls(
            advanced_security_enabled_for_new_repositories=enabled,
            secret_scanning_enabled_for_new_repositories=enabled,
            secret_scanning_push_protection_enabled_for_new_repositories=enabled,
        )


class IssueRequest(BaseModel):
    """Body for creating an issue."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    body: str = Field(default="")
