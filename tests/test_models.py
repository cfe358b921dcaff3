"""
Tests for Data Models and Configuration

Tests for the Pydantic models and settings used in the application.
"""

import pytest
from pydantic import ValidationError

from conftest import CATCH_ALL_URL, DISCORD_JS_URL
from webhook_relay.config import EndpointConfig, Settings, normalize_endpoint_key
from webhook_relay.models import (
    CheckedEvent,
    CommitCommentEvent,
    ForwardPlan,
    GitHubCommit,
    GitHubRepository,
    GitHubUser,
    IssueCommentEvent,
    PullRequestEvent,
    PushEvent,
    RefEvent,
    RoutingTarget,
    parse_webhook_event,
)


class TestEnums:
    """Tests for event and target enums."""

    def test_checked_event_from_header(self):
        assert CheckedEvent.from_header("push") == CheckedEvent.PUSH
        assert CheckedEvent.from_header("create") == CheckedEvent.TAG_OR_BRANCH_CREATE
        assert CheckedEvent.from_header("star") is None
        assert CheckedEvent.from_header(None) is None

    def test_routing_target_sentinels(self):
        assert RoutingTarget.MONOREPO.is_sentinel
        assert RoutingTarget.NONE.is_sentinel
        assert not RoutingTarget.REST.is_sentinel

    def test_routing_target_from_name(self):
        assert RoutingTarget.from_name("Discord.js") == RoutingTarget.DISCORD_JS
        assert RoutingTarget.from_name("monorepo") is None
        assert RoutingTarget.from_name("none") is None
        assert RoutingTarget.from_name("") is None


class TestGitHubModels:
    """Tests for payload fragments."""

    def test_bot_detection(self):
        assert GitHubUser(login="dependabot[bot]", type="Bot").is_bot
        assert GitHubUser(login="renovate[bot]").is_bot
        assert not GitHubUser(login="octocat", type="User").is_bot

    def test_repository_owner_login(self):
        repo = GitHubRepository(name="rest", full_name="discordjs/rest", owner=GitHubUser(login="discordjs"))
        assert repo.owner_login == "discordjs"

        no_owner = GitHubRepository(name="rest", full_name="fallback/rest")
        assert no_owner.owner_login == "fallback"

    def test_pull_request_keeps_routing_fields_only(self, pr_payload):
        parsed = parse_webhook_event(CheckedEvent.PULL_REQUEST, pr_payload)

        assert set(parsed.pull_request.model_dump()) == {"number", "title", "labels"}

    def test_commit_paths(self):
        commit = GitHubCommit(added=["a"], removed=["b"], modified=["c"])

        assert commit.paths == ["a", "b", "c"]


class TestParseWebhookEvent:
    """Tests for parsing raw payloads into event variants."""

    @pytest.mark.parametrize("event", [
        CheckedEvent.PULL_REQUEST,
        CheckedEvent.PULL_REQUEST_REVIEW,
        CheckedEvent.PULL_REQUEST_REVIEW_COMMENT,
        CheckedEvent.PULL_REQUEST_REVIEW_THREAD,
    ])
    def test_pull_request_family(self, event, pr_payload):
        parsed = parse_webhook_event(event, pr_payload)

        assert isinstance(parsed, PullRequestEvent)
        assert parsed.pull_request.number == 42
        assert parsed.repository.full_name == "discordjs/discord.js"

    def test_push(self, push_payload):
        parsed = parse_webhook_event(CheckedEvent.PUSH, push_payload)

        assert isinstance(parsed, PushEvent)
        assert not parsed.is_tag
        assert parsed.commits[0].modified == ["packages/rest/src/lib/REST.ts"]

    def test_tag_push(self):
        parsed = parse_webhook_event(CheckedEvent.PUSH, {"ref": "refs/tags/discord.js@14.0.0"})

        assert parsed.is_tag

    def test_issue_comment(self, issue_comment_payload):
        parsed = parse_webhook_event(CheckedEvent.ISSUE_COMMENT, issue_comment_payload)

        assert isinstance(parsed, IssueCommentEvent)
        assert parsed.issue.labels[0].name == "packages:voice"

    def test_commit_comment(self):
        parsed = parse_webhook_event(
            CheckedEvent.COMMIT_COMMENT,
            {"comment": {"path": "packages/ws/a.ts", "commit_id": "abc"}}
        )

        assert isinstance(parsed, CommitCommentEvent)
        assert parsed.comment.path == "packages/ws/a.ts"

    def test_ref_event_defaults_to_branch(self):
        parsed = parse_webhook_event(CheckedEvent.TAG_OR_BRANCH_DELETE, {"ref": "feature"})

        assert isinstance(parsed, RefEvent)
        assert parsed.ref_type == "branch"

    def test_missing_required_object(self):
        with pytest.raises(ValidationError):
            parse_webhook_event(CheckedEvent.RELEASE, {"action": "published"})

    def test_wrong_field_type(self):
        with pytest.raises(ValidationError):
            parse_webhook_event(CheckedEvent.PUSH, {"commits": "not-a-list"})


class TestForwardPlan:
    """Tests for ForwardPlan."""

    def test_frozen(self):
        plan = ForwardPlan(target=RoutingTarget.REST, url="https://example.test", payload={})

        with pytest.raises(ValidationError):
            plan.url = "https://other.test"


class TestSettings:
    """Tests for settings and endpoint configuration."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.github_api_url == "https://api.github.com"
        assert settings.github_webhook_secret is None
        assert settings.log_level == "INFO"

    def test_log_level_validation(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="loud")

    def test_api_url_trailing_slash(self):
        settings = Settings(_env_file=None, github_api_url="https://ghe.example.test/api/v3/")

        assert settings.github_api_url == "https://ghe.example.test/api/v3"

    def test_webhooks_from_json_env(self, monkeypatch):
        monkeypatch.setenv("DISCORD_WEBHOOKS", f'{{"monorepo": "{CATCH_ALL_URL}"}}')

        endpoints = EndpointConfig.from_settings(Settings(_env_file=None))

        assert endpoints.catch_all == CATCH_ALL_URL

    def test_webhooks_from_nested_env(self, monkeypatch):
        monkeypatch.setenv("DISCORD_WEBHOOKS__DISCORD_JS", DISCORD_JS_URL)

        endpoints = EndpointConfig.from_settings(Settings(_env_file=None))

        assert endpoints.url_for("discord.js") == DISCORD_JS_URL
        assert endpoints.catch_all is None

    @pytest.mark.parametrize("name,expected", [
        ("discord.js", "discord_js"),
        ("DISCORD_JS", "discord_js"),
        ("create-discord-bot", "create_discord_bot"),
        ("monorepo", "monorepo"),
    ])
    def test_normalize_endpoint_key(self, name, expected):
        assert normalize_endpoint_key(name) == expected

    def test_endpoint_config_is_frozen(self):
        endpoints = EndpointConfig(endpoints={"monorepo": CATCH_ALL_URL})

        with pytest.raises(ValidationError):
            endpoints.endpoints = {}
