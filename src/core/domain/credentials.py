"""Federated-credential catalog for a GitHub repository.

The default set is five credentials: the main branch, pull requests and one
per deployment environment (dev, staging, production). Setup and verification
both derive their expectations from here, so they can never disagree.
"""

from __future__ import annotations

import re
from typing import Sequence

from core.domain.models import FederatedCredential


def repo_subject(org: str, repo: str, suffix: str) -> str:
    return f"repo:{org}/{repo}:{suffix}"


def credential_name(*parts: str) -> str:
    """Azure AD accepts letters, digits, `-` and `_`; `release/1.0` becomes `release-1-0`."""

    raw = "-".join(parts)
    return re.sub(r"[^A-Za-z0-9_-]+", "-", raw).strip("-_")


def default_federated_credentials(
    *,
    org: str,
    repo: str,
    branch: str = "main",
    environments: Sequence[str] = ("dev", "staging", "production"),
) -> list[FederatedCredential]:
    """Build the ordered list of credentials GitHub Actions needs."""

    credentials = [
        FederatedCredential(
            name=credential_name(branch, "branch"),
            subject=repo_subject(org, repo, f"ref:refs/heads/{branch}"),
            description=f"{branch.capitalize()} branch deployments",
        ),
        FederatedCredential(
            name="pull-requests",
            subject=repo_subject(org, repo, "pull_request"),
            description="Pull request builds",
        ),
    ]
    seen: set[str] = set()
    for env in environments:
        env = env.strip()
        if not env or env in seen:
            continue
        seen.add(env)
        credentials.append(
            FederatedCredential(
                name=credential_name(env, "environment"),
                subject=repo_subject(org, repo, f"environment:{env}"),
                description=f"{env.capitalize()} environment deployments",
            )
        )
    return credentials
