"""
Data Models Module

This module defines the Pydantic models used throughout the application.

Design Decisions:
- Webhook payloads are parsed into one model per event family; the raw
  dict is still what gets forwarded, so the models only declare the
  fields routing needs and ignore the rest
- Fields are lenient (mostly optional) so any delivery GitHub can send
  for a family parses into its variant
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class CheckedEvent(str, Enum):
    """GitHub events that go through classification."""
    COMMIT_COMMENT = "commit_comment"
    ISSUES = "issues"
    ISSUE_COMMENT = "issue_comment"
    PULL_REQUEST = "pull_request"
    PULL_REQUEST_REVIEW = "pull_request_review"
    PULL_REQUEST_REVIEW_COMMENT = "pull_request_review_comment"
    PULL_REQUEST_REVIEW_THREAD = "pull_request_review_thread"
    PUSH = "push"
    RELEASE = "release"
    TAG_OR_BRANCH_CREATE = "create"
    TAG_OR_BRANCH_DELETE = "delete"

    @classmethod
    def from_header(cls, value: Optional[str]) -> Optional["CheckedEvent"]:
        """Map an X-GitHub-Event value to a checked event, None if unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


class RoutingTarget(str, Enum):
    """Discord channels an event can be routed to."""
    ACTIONS = "actions"
    API_EXTRACTOR = "api-extractor"
    BROKERS = "brokers"
    BUILDERS = "builders"
    COLLECTION = "collection"
    CORE = "core"
    CREATE_DISCORD_BOT = "create-discord-bot"
    DISCORD_JS = "discord.js"
    DOCGEN = "docgen"
    FORMATTERS = "formatters"
    GUIDE = "guide"
    NEXT = "next"
    PROXY = "proxy"
    REST = "rest"
    SCRIPTS = "scripts"
    UI = "ui"
    UTIL = "util"
    VOICE = "voice"
    WEBSITE = "website"
    WS = "ws"

    # Sentinels
    MONOREPO = "monorepo"
    NONE = "none"

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["RoutingTarget"]:
        """Map a package name to a tracked target; sentinels never match."""
        if not name:
            return None
        try:
            target = cls(name.strip().lower())
        except ValueError:
            return None
        if target.is_sentinel:
            return None
        return target

    @property
    def is_sentinel(self) -> bool:
        return self in (RoutingTarget.MONOREPO, RoutingTarget.NONE)


# =============================================================================
# GitHub Payload Models
# =============================================================================

class GitHubModel(BaseModel):
    """Base for payload fragments; unknown fields are ignored."""
    model_config = ConfigDict(extra="ignore")


class GitHubUser(GitHubModel):
    """GitHub user information."""
    login: str = ""
    id: Optional[int] = None
    type: str = "User"

    @property
    def is_bot(self) -> bool:
        return self.type == "Bot" or self.login.endswith("[bot]")


class GitHubRepository(GitHubModel):
    """GitHub repository information."""
    name: str = ""
    full_name: str = ""
    owner: Optional[GitHubUser] = None

    @property
    def owner_login(self) -> str:
        """Owner login, falling back to the full name prefix."""
        if self.owner and self.owner.login:
            return self.owner.login
        return self.full_name.split("/")[0]


class GitHubLabel(GitHubModel):
    """Issue or pull request label."""
    name: str = ""


class GitHubIssue(GitHubModel):
    """Issue information (also used for pull requests seen as issues)."""
    number: int
    title: str = ""
    labels: List[GitHubLabel] = []


class GitHubComment(GitHubModel):
    """Issue, commit or review comment."""
    user: Optional[GitHubUser] = None
    path: Optional[str] = None
    commit_id: Optional[str] = None


class GitHubPullRequest(GitHubModel):
    """Pull request information from webhook."""
    number: int
    title: str = ""
    labels: List[GitHubLabel] = []


class GitHubCommit(GitHubModel):
    """Commit summary as included in push payloads."""
    added: List[str] = []
    removed: List[str] = []
    modified: List[str] = []

    @property
    def paths(self) -> List[str]:
        return [*self.added, *self.removed, *self.modified]


class GitHubRelease(GitHubModel):
    """Release information."""
    tag_name: str = ""


# =============================================================================
# Webhook Event Variants
# =============================================================================

class BaseEvent(GitHubModel):
    """Fields shared by every event family."""
    action: Optional[str] = None
    repository: Optional[GitHubRepository] = None
    sender: Optional[GitHubUser] = None


class CommitCommentEvent(BaseEvent):
    """commit_comment event."""
    comment: GitHubComment


class IssuesEvent(BaseEvent):
    """issues event."""
    issue: GitHubIssue


class IssueCommentEvent(BaseEvent):
    """issue_comment event."""
    issue: GitHubIssue
    comment: GitHubComment


class PullRequestEvent(BaseEvent):
    """pull_request, pull_request_review, *_review_comment and *_review_thread."""
    pull_request: GitHubPullRequest


class PushEvent(BaseEvent):
    """push event."""
    ref: str = ""
    commits: List[GitHubCommit] = []
    head_commit: Optional[GitHubCommit] = None

    @property
    def is_tag(self) -> bool:
        return self.ref.startswith("refs/tags/")


class ReleaseEvent(BaseEvent):
    """release event."""
    release: GitHubRelease


class RefEvent(BaseEvent):
    """create and delete events for tags and branches."""
    ref: str = ""
    ref_type: str = Field(default="branch")


WebhookEvent = Union[
    CommitCommentEvent,
    IssuesEvent,
    IssueCommentEvent,
    PullRequestEvent,
    PushEvent,
    ReleaseEvent,
    RefEvent,
]


EVENT_MODELS: Dict[CheckedEvent, type] = {
    CheckedEvent.COMMIT_COMMENT: CommitCommentEvent,
    CheckedEvent.ISSUES: IssuesEvent,
    CheckedEvent.ISSUE_COMMENT: IssueCommentEvent,
    CheckedEvent.PULL_REQUEST: PullRequestEvent,
    CheckedEvent.PULL_REQUEST_REVIEW: PullRequestEvent,
    CheckedEvent.PULL_REQUEST_REVIEW_COMMENT: PullRequestEvent,
    CheckedEvent.PULL_REQUEST_REVIEW_THREAD: PullRequestEvent,
    CheckedEvent.PUSH: PushEvent,
    CheckedEvent.RELEASE: ReleaseEvent,
    CheckedEvent.TAG_OR_BRANCH_CREATE: RefEvent,
    CheckedEvent.TAG_OR_BRANCH_DELETE: RefEvent,
}


def parse_webhook_event(event: CheckedEvent, payload: Dict[str, Any]) -> WebhookEvent:
    """
    Parse a raw payload into the variant for its event family.

    Raises:
        pydantic.ValidationError: If the payload does not fit the family
    """
    return EVENT_MODELS[event].model_validate(payload)


# =============================================================================
# Internal Processing Models
# =============================================================================

class ForwardPlan(BaseModel):
    """
    Where and what to forward for one delivery.

    Produced by the target resolver and consumed once by the relay.
    """
    model_config = ConfigDict(frozen=True)

    target: RoutingTarget
    url: str
    payload: Any
    rewritten: bool = False
