"""
Event Classifier Module

Computes the Discord channel (routing target) for a GitHub event.

Each event family has one rule. Rules look at paths, labels, titles and
tag names to find the sub-project of the monorepo an event belongs to:
- exactly one sub-project found: route to that sub-project's channel
- none or several found: route to the catch-all (monorepo) channel
- noise the channels should never see: skip (RoutingTarget.NONE)

Two rules (commit comments without a path and pull requests) may need to
ask GitHub which files were touched. Lookup errors are not handled here;
the webhook handler decides what they mean for the response.
"""

import re
from typing import Iterable, List, Optional, Set, Union

from webhook_relay.logging_config import get_logger
from webhook_relay.models import (
    CommitCommentEvent,
    GitHubLabel,
    GitHubUser,
    IssueCommentEvent,
    IssuesEvent,
    PullRequestEvent,
    PushEvent,
    RefEvent,
    ReleaseEvent,
    RoutingTarget,
    WebhookEvent,
)
from webhook_relay.services.github_client import GitHubClient

logger = get_logger(__name__)

PACKAGE_SCOPE = "@discordjs/"

PATH_PATTERN = re.compile(r"^(?:packages|apps)/([^/]+)/")
LABEL_PATTERN = re.compile(r"^(?:packages|apps):\s*(.+)$", re.IGNORECASE)
TITLE_SCOPE_PATTERN = re.compile(r"^\s*\w+\(([^)]+)\)!?:")
TITLE_BRACKET_PATTERN = re.compile(r"^\s*\[([^\]]+)\]")
TAG_PATTERN = re.compile(r"^(?P<name>(?:@[^/@]+/)?[^@]+)@v?\d")

# Label churn on issues would flood the channels with one message per label
SKIPPED_ISSUE_ACTIONS = {"labeled", "unlabeled"}


# =============================================================================
# Helpers
# =============================================================================

def target_from_name(name: Optional[str]) -> Optional[RoutingTarget]:
    """Map a package name (optionally scoped) to a tracked target."""
    if not name:
        return None
    name = name.strip()
    if name.lower().startswith(PACKAGE_SCOPE):
        name = name[len(PACKAGE_SCOPE):]
    return RoutingTarget.from_name(name)


def target_from_path(path: Optional[str]) -> Optional[RoutingTarget]:
    """Map a repository path such as packages/rest/src/index.ts to a target."""
    if not path:
        return None
    match = PATH_PATTERN.match(path.lstrip("/"))
    if not match:
        return None
    return target_from_name(match.group(1))


def target_from_tag(tag: Optional[str]) -> Optional[RoutingTarget]:
    """Map a release tag like @discordjs/rest@2.0.0 or discord.js@14.0.0."""
    if not tag:
        return None
    tag = tag.removeprefix("refs/tags/")
    match = TAG_PATTERN.match(tag)
    if not match:
        return None
    return target_from_name(match.group("name"))


def targets_from_paths(paths: Iterable[str]) -> Set[RoutingTarget]:
    """Collect the distinct targets a set of paths touches."""
    targets = set()
    for path in paths:
        target = target_from_path(path)
        if target is not None:
            targets.add(target)
    return targets


def targets_from_labels(labels: Iterable[GitHubLabel]) -> Set[RoutingTarget]:
    """Collect targets from labels named packages:<name> or apps:<name>."""
    targets = set()
    for label in labels:
        match = LABEL_PATTERN.match(label.name)
        if match:
            target = target_from_name(match.group(1))
            if target is not None:
                targets.add(target)
    return targets


def targets_from_title(title: Optional[str]) -> Set[RoutingTarget]:
    """
    Collect targets from a title scope.

    Understands conventional commit scopes ("feat(rest): ...",
    "fix(builders, rest)!: ...") and bracket prefixes ("[voice] ...").
    """
    if not title:
        return set()
    match = TITLE_SCOPE_PATTERN.match(title) or TITLE_BRACKET_PATTERN.match(title)
    if not match:
        return set()

    targets = set()
    for scope in match.group(1).split(","):
        target = target_from_name(scope)
        if target is not None:
            targets.add(target)
    return targets


def single_target(candidates: Iterable[RoutingTarget]) -> RoutingTarget:
    """Exactly one distinct candidate wins; anything else goes to the catch-all."""
    distinct = set(candidates)
    if len(distinct) == 1:
        return distinct.pop()
    return RoutingTarget.MONOREPO


def _is_bot(user: Optional[GitHubUser]) -> bool:
    return user is not None and user.is_bot


# =============================================================================
# Rules
# =============================================================================

async def classify_commit_comment(
    event: CommitCommentEvent,
    lookup: GitHubClient
) -> RoutingTarget:
    """
    Route a commit comment.

    Line comments are routed by the commented file; comments on a file
    outside the tracked sub-projects are skipped. Comments on the commit
    as a whole need the commit's file list from GitHub.
    """
    comment = event.comment
    if _is_bot(comment.user):
        return RoutingTarget.NONE

    if comment.path:
        return target_from_path(comment.path) or RoutingTarget.NONE

    repository = event.repository
    if not comment.commit_id or repository is None:
        return RoutingTarget.MONOREPO

    paths = await lookup.get_commit_files(
        repository.owner_login,
        repository.name,
        comment.commit_id
    )
    return single_target(targets_from_paths(paths))


def classify_issue(event: Union[IssuesEvent, IssueCommentEvent]) -> RoutingTarget:
    """Route an issue or issue comment by its labels, then its title."""
    if isinstance(event, IssueCommentEvent) and _is_bot(event.comment.user):
        return RoutingTarget.NONE
    if isinstance(event, IssuesEvent) and event.action in SKIPPED_ISSUE_ACTIONS:
        return RoutingTarget.NONE

    issue = event.issue
    targets = targets_from_labels(issue.labels) or targets_from_title(issue.title)
    return single_target(targets)


async def classify_pull_request(
    event: PullRequestEvent,
    lookup: GitHubClient
) -> RoutingTarget:
    """
    Route any pull request family event.

    Labels and the title scope are tried first; if neither names a
    sub-project the changed files are fetched from GitHub.
    """
    pull_request = event.pull_request
    targets = targets_from_labels(pull_request.labels) or targets_from_title(pull_request.title)
    if targets:
        return single_target(targets)

    repository = event.repository
    if repository is None:
        return RoutingTarget.MONOREPO

    paths = await lookup.get_pull_request_files(
        repository.owner_login,
        repository.name,
        pull_request.number
    )
    return single_target(targets_from_paths(paths))


def classify_push(event: PushEvent) -> RoutingTarget:
    """Route a push by the paths its commits touched, or by tag name."""
    if event.is_tag:
        return target_from_tag(event.ref) or RoutingTarget.MONOREPO

    paths: List[str] = []
    for commit in event.commits:
        paths.extend(commit.paths)
    if event.head_commit is not None:
        paths.extend(event.head_commit.paths)
    return single_target(targets_from_paths(paths))


def classify_release(event: ReleaseEvent) -> RoutingTarget:
    """Route a release by its tag name."""
    return target_from_tag(event.release.tag_name) or RoutingTarget.MONOREPO


def classify_ref(event: RefEvent) -> RoutingTarget:
    """Route tag/branch creation and deletion; only tags name a package."""
    if event.ref_type == "tag":
        return target_from_tag(event.ref) or RoutingTarget.MONOREPO
    return RoutingTarget.MONOREPO


async def classify(event: WebhookEvent, lookup: GitHubClient) -> RoutingTarget:
    """
    Compute the routing target for a parsed webhook event.

    Args:
        event: Parsed event variant
        lookup: GitHub client for rules that need repository context

    Returns:
        A tracked target, RoutingTarget.MONOREPO or RoutingTarget.NONE

    Raises:
        GitHubNotFoundError: A looked-up commit or pull request is gone
        GitHubAPIError: Any other lookup failure
    """
    if isinstance(event, CommitCommentEvent):
        target = await classify_commit_comment(event, lookup)
    elif isinstance(event, (IssuesEvent, IssueCommentEvent)):
        target = classify_issue(event)
    elif isinstance(event, PullRequestEvent):
        target = await classify_pull_request(event, lookup)
    elif isinstance(event, PushEvent):
        target = classify_push(event)
    elif isinstance(event, ReleaseEvent):
        target = classify_release(event)
    elif isinstance(event, RefEvent):
        target = classify_ref(event)
    else:
        target = RoutingTarget.MONOREPO

    logger.debug(
        "Classified event",
        event_type=type(event).__name__,
        target=target.value
    )
    return target
