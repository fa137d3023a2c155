"""Branch-to-environment resolution and deployment gating."""

import logging
from dataclasses import dataclass
from typing import Mapping

from ..models.schemas import Environment, EnvironmentSelection, TriggerEvent

logger = logging.getLogger(__name__)


DEFAULT_HOSTNAMES = {
    "dev": "dev01",
    "test": "test01",
    "prod": "prod01",
}

DEFAULT_RUNNER_LABELS = {
    "dev": "dev",
    "test": "test",
    "prod": "prod",
}


class HostnameOverrideError(ValueError):
    """Raised when an environment hostname override string is malformed."""
    pass


@dataclass(frozen=True)
class BranchRule:
    """A single branch matching rule."""
    environment: Environment
    approval_required: bool
    exact: tuple[str, ...] = ()
    prefixes: tuple[str, ...] = ()

    def matches(self, branch: str) -> bool:
        return branch in self.exact or branch.startswith(self.prefixes)


# Evaluated in order; the first match wins.
BRANCH_RULES = (
    BranchRule(Environment.PRODUCTION, approval_required=True, exact=("main",)),
    BranchRule(Environment.TEST, approval_required=False, exact=("test",)),
    BranchRule(
        Environment.DEVELOPMENT,
        approval_required=False,
        exact=("dev",),
        prefixes=("feature/", "bug/", "refactor/"),
    ),
)


def parse_hostname_overrides(value: str | None) -> dict[str, str]:
    """
    Parse an ``env=hostname,env=hostname`` override string.

    Example:
        "dev=custom-dev01,prod=custom-prod01"
        -> {"dev": "custom-dev01", "prod": "custom-prod01"}

    Whitespace around entries is stripped and empty entries (e.g. a trailing
    comma) are ignored.

    Raises:
        HostnameOverrideError if an entry has no '=', an empty key or hostname,
        an unknown environment key, or repeats a key
    """
    overrides: dict[str, str] = {}
    if not value:
        return overrides

    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue

        key, sep, hostname = entry.partition("=")
        key = key.strip()
        hostname = hostname.strip()

        if not sep:
            raise HostnameOverrideError(f"Invalid hostname override '{entry}': expected 'env=hostname'")
        if not key or not hostname:
            raise HostnameOverrideError(f"Invalid hostname override '{entry}': empty environment or hostname")
        if key not in DEFAULT_HOSTNAMES:
            raise HostnameOverrideError(
                f"Unknown environment '{key}' in hostname override. "
                f"Valid environments: {', '.join(DEFAULT_HOSTNAMES)}"
            )
        if key in overrides:
            raise HostnameOverrideError(f"Duplicate hostname override for environment '{key}'")

        overrides[key] = hostname

    return overrides


def resolve_hostnames(overrides: str | Mapping[str, str] | None = None) -> dict[str, str]:
    """Merge hostname overrides on top of the defaults."""
    if overrides is None or isinstance(overrides, str):
        overrides = parse_hostname_overrides(overrides)
    hostnames = dict(DEFAULT_HOSTNAMES)
    hostnames.update(overrides)
    return hostnames


def match_environment(branch: str) -> BranchRule | None:
    """Find the rule that applies to a branch name, if any."""
    for rule in BRANCH_RULES:
        if rule.matches(branch):
            return rule
    return None


def resolve_environment(
    branch: str,
    overrides: str | Mapping[str, str] | None = None,
    event: TriggerEvent | str = TriggerEvent.PUSH,
    runner_labels: Mapping[str, str] | None = None,
) -> EnvironmentSelection | None:
    """
    Resolve the deployment environment for a branch.

    Rules, first match wins:
        main                                  -> production (approval required)
        test                                  -> test
        dev, feature/*, bug/*, refactor/*     -> development
        anything else                         -> None (deployment skipped)

    Pull request events never deploy.

    Args:
        branch: Triggering branch name
        overrides: Hostname override string or already-parsed mapping
        event: Triggering event type
        runner_labels: Optional runner label per environment key

    Returns:
        EnvironmentSelection, or None when no deployment applies

    Raises:
        HostnameOverrideError if the override string is malformed
    """
    hostnames = resolve_hostnames(overrides)

    if TriggerEvent(event) is TriggerEvent.PULL_REQUEST:
        logger.debug("Pull request event for %s, no deployment", branch)
        return None

    rule = match_environment(branch)
    if rule is None:
        logger.debug("Branch %s does not match any environment", branch)
        return None

    key = rule.environment.key
    labels = {**DEFAULT_RUNNER_LABELS, **(runner_labels or {})}
    return EnvironmentSelection(
        environment=rule.environment,
        hostname=hostnames[key],
        runner_label=labels[key],
        approval_required=rule.approval_required,
    )
