"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Platform(StrEnum):
    GITHUB = "github"
    ZULIP = "zulip"


class EntityKind(StrEnum):
    ORGANIZATION = "organization"
    TEAM = "team"
    MEMBERSHIP = "membership"
    REPOSITORY = "repository"
    REPO_PERMISSION = "repo_permission"
    BRANCH_PROTECTION = "branch_protection"
    APP_INSTALLATION = "app_installation"
    USER = "user"


class TeamRole(StrEnum):
    MEMBER = "member"
    MAINTAINER = "maintainer"


class TeamPrivacy(StrEnum):
    CLOSED = "closed"
    SECRET = "secret"


class RepoPermission(StrEnum):
    """Repository permission levels as named by the REST API."""

    PULL = "pull"
    TRIAGE = "triage"
    PUSH = "push"
    MAINTAIN = "maintain"
    ADMIN = "admin"
