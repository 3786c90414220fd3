"""Tests for ReviewOrchestrator: full runs against a scripted agent and fake tools."""

import copy

import pytest

from prwarden_core.config import DEFAULT_CONFIG
from prwarden_core.errors import AgentError, PRNotFoundError
from prwarden_core.models import STATUS_COMPLETED, STATUS_FAILED, EnhancementResult, ReviewRequest
from prwarden_core.providers.base import BaseAgent, ModelTurn, ToolUse
from prwarden_core.reporting import ReportWriter
from prwarden_core.reviewer import ReviewOrchestrator
from prwarden_core.session import SessionTracker
from prwarden_core.tools.base import Toolset, ToolSpec, schema
from prwarden_core.tools.registry import ToolRegistry, blocked_tools

PR = {
    "id": 7,
    "title": "Add cache",
    "description": "Adds a cache.",
    "state": "OPEN",
    "author": "Jane Doe",
    "author_username": "jdoe",
    "source_branch": "feature/cache",
    "destination_branch": "main",
    "created_on": "2026-01-22T12:16:32+00:00",
}

SUMMARY = """\
Reviewed the change.

## Statistics
- **Files Reviewed**: 2
- **Issues Found**: 🔒 0 | ⚠️ 1 | 💡 2 | 💬 0
"""

REPORT = """\
# Code Review Report

**Decision**: BLOCKED

## Statistics
- **Files Reviewed**: 3
- **Issues Found**: 🔒 1 | ⚠️ 0 | 💡 0 | 💬 0
"""


class _FakeGitHub(Toolset):
    name = "github"

    def __init__(self, pulls=(PR,), fail_get=False):
        self.pulls = list(pulls)
        self.fail_get = fail_get
        self.actions = []

    def specs(self):
        names = [
            "get_pull_request",
            "list_pull_requests",
            "get_pull_request_diff",
            "add_comment",
            "approve_pull_request",
            "request_changes",
            "update_pull_request",
        ]
        return [ToolSpec(name, "", schema({})) for name in names]

    def get_pull_request(self, workspace, repository, pull_request_id):
        if self.fail_get:
            raise RuntimeError("502 Bad Gateway")
        return next(pr for pr in self.pulls if pr["id"] == pull_request_id)

    def list_pull_requests(self, workspace, repository, state="OPEN", limit=50, start=0):
        page = self.pulls[start : start + limit]
        return {"values": page, "isLastPage": start + limit >= len(self.pulls)}

    def get_pull_request_diff(self, **kwargs):
        return {"files": []}

    def add_comment(self, **kwargs):
        self.actions.append(("add_comment", kwargs))
        return {"id": 1}

    def approve_pull_request(self, **kwargs):
        self.actions.append(("approve_pull_request", kwargs))
        return {"event": "APPROVE"}

    def request_changes(self, **kwargs):
        self.actions.append(("request_changes", kwargs))
        return {"event": "REQUEST_CHANGES"}

    def update_pull_request(self, **kwargs):
        self.actions.append(("update_pull_request", kwargs))
        return {"updated": True}


class _ScriptedAgent(BaseAgent):
    MODEL = "stub-model"

    def __init__(self, turns):
        super().__init__()
        self.turns = list(turns)
        self.instructions = []

    def generate(self, instructions, context, tools, recorder=None):
        self.instructions.append(instructions)
        return super().generate(instructions, context, tools, recorder)

    def _call_api(self, history, tools):
        turn = self.turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        turn.message = ("assistant", turn.text)
        return turn

    def _add_user_text(self, history, text):
        history.append(("user", text))

    def _add_tool_results(self, history, results):
        history.append(("tool", results))


def _use(name, **arguments):
    return ToolUse(id=f"id-{name}", name=name, arguments=arguments)


def _turn(text="", *uses):
    return ModelTurn(text=text, tool_uses=list(uses), input_tokens=1000, output_tokens=100)


PR_ARGS = {"workspace": "acme", "repository": "api", "pull_request_id": 7}


@pytest.fixture
def config():
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["display"]["show_banner"] = False
    return cfg


@pytest.fixture
def github():
    return _FakeGitHub()


@pytest.fixture
def writer(tmp_path):
    return ReportWriter(reports_dir=str(tmp_path / "reports"), backups_dir=str(tmp_path / "backups"))


def _orchestrator(config, github, turns, writer, tracker=None):
    def factory(cfg, report_mode=False, dry_run=False):
        registry = ToolRegistry(blocked=blocked_tools(cfg, report_mode))
        registry.register(github)
        return registry

    agent = _ScriptedAgent(turns)
    return ReviewOrchestrator(
        config,
        agent=agent,
        registry_factory=factory,
        tracker=tracker or SessionTracker(),
        report_writer=writer,
    )


def _request(**overrides):
    fields = {"workspace": "acme", "repository": "api", "pull_request_id": 7}
    fields.update(overrides)
    return ReviewRequest(**fields)


class TestReview:
    def test_approved_review(self, config, github, writer):
        orchestrator = _orchestrator(
            config,
            github,
            [
                _turn("", _use("get_pull_request", **PR_ARGS)),
                _turn("", _use("add_comment", **PR_ARGS, comment_text="nit")),
                _turn("", _use("approve_pull_request", **PR_ARGS)),
                _turn(SUMMARY),
            ],
            writer,
        )

        result = orchestrator.start_review(_request())

        assert result.decision == "APPROVED"
        assert result.pr_id == 7
        assert result.statistics.files_reviewed == 2
        assert result.statistics.comments_posted == 1
        assert result.statistics.total_comments == 3
        # The pre-review lookup is not one of the agent's tool calls.
        assert result.statistics.tool_calls_made == 3
        assert result.token_usage.total == 4400
        assert result.description_enhanced is None
        assert [a[0] for a in github.actions] == ["add_comment", "approve_pull_request"]

        session = orchestrator.get_session(result.session_id)
        assert session.status == STATUS_COMPLETED
        assert session.metadata.ai_model == "stub-model"
        assert session.metadata.total_tokens == 4400
        assert orchestrator.get_session_stats(result.session_id)["total_tool_calls"] == 3

    def test_request_changes_means_blocked(self, config, github, writer):
        orchestrator = _orchestrator(
            config, github, [_turn("", _use("request_changes", **PR_ARGS)), _turn("Blocking.")], writer
        )
        assert orchestrator.start_review(_request()).decision == "BLOCKED"

    def test_no_decision_tool_means_changes_requested(self, config, github, writer):
        orchestrator = _orchestrator(config, github, [_turn("**Decision**: APPROVED")], writer)
        assert orchestrator.start_review(_request()).decision == "CHANGES_REQUESTED"

    def test_instructions_carry_the_task(self, config, github, writer):
        orchestrator = _orchestrator(config, github, [_turn("ok")], writer)
        orchestrator.start_review(_request(dry_run=True))
        instructions = orchestrator.agent.instructions[0]
        assert "<review-task>" in instructions
        assert "<mode>dry-run</mode>" in instructions

    def test_agent_history_released(self, config, github, writer):
        orchestrator = _orchestrator(config, github, [_turn("ok")], writer)
        orchestrator.start_review(_request())
        assert orchestrator.agent._histories == {}

    def test_export_session(self, config, github, writer):
        orchestrator = _orchestrator(config, github, [_turn("ok")], writer)
        result = orchestrator.start_review(_request())
        exported = orchestrator.export_session(result.session_id)
        assert exported["status"] == STATUS_COMPLETED
        assert exported["result"]["decision"] == "CHANGES_REQUESTED"


class TestReportMode:
    def test_report_written_and_posting_blocked(self, config, github, writer, tmp_path):
        orchestrator = _orchestrator(
            config,
            github,
            [_turn("", _use("add_comment", **PR_ARGS, comment_text="x")), _turn(REPORT)],
            writer,
        )
        report_path = tmp_path / "out" / "review.md"

        result = orchestrator.start_review(_request(report_mode=True, report_path=str(report_path)))

        assert result.decision == "BLOCKED"
        assert result.report_path == str(report_path)
        assert report_path.read_text().startswith("# Code Review Report")
        assert github.actions == []
        session = orchestrator.get_session(result.session_id)
        assert session.tool_calls[0].error

    def test_default_report_path(self, config, github, writer, tmp_path):
        orchestrator = _orchestrator(config, github, [_turn(REPORT)], writer)
        result = orchestrator.start_review(_request(report_mode=True, report_format="md"))
        assert result.report_path.startswith(str(tmp_path / "reports" / "api-pr-7-"))
        assert result.report_path.endswith(".md")

    def test_report_write_failure_does_not_fail_review(self, config, github, writer, mocker):
        mocker.patch.object(writer, "write_report", side_effect=OSError("disk full"))
        orchestrator = _orchestrator(config, github, [_turn(REPORT)], writer)
        result = orchestrator.start_review(_request(report_mode=True))
        assert result.report_path is None
        assert orchestrator.get_session(result.session_id).status == STATUS_COMPLETED


class TestEnhancement:
    def test_review_then_enhance(self, config, github, writer, tmp_path):
        orchestrator = _orchestrator(
            config,
            github,
            [
                _turn("", _use("get_pull_request", **PR_ARGS)),
                _turn("", _use("approve_pull_request", **PR_ARGS)),
                _turn(SUMMARY),
                _turn("", _use("update_pull_request", **PR_ARGS, description="## Summary\nNew")),
                _turn("## Summary\nNew"),
            ],
            writer,
        )

        result = orchestrator.start_review_and_enhance(_request())

        assert result.decision == "APPROVED"
        assert result.description_enhanced is True
        assert result.token_usage.total == 5 * 1100
        assert [a[0] for a in github.actions] == ["approve_pull_request", "update_pull_request"]
        backups = list((tmp_path / "backups").iterdir())
        assert len(backups) == 1
        assert backups[0].read_text() == "Adds a cache."
        assert "<enhancement-task>" in orchestrator.agent.instructions[1]

    def test_backup_without_prior_lookup(self, config, github, writer, tmp_path):
        orchestrator = _orchestrator(config, github, [_turn("done"), _turn("## Summary")], writer)
        orchestrator.start_review_and_enhance(_request())
        assert len(list((tmp_path / "backups").iterdir())) == 1

    def test_backup_ignores_malformed_nested_data(self, config, writer, tmp_path):
        github = _FakeGitHub(pulls=[{"id": 7, "title": "Cache", "data": "unexpected"}])
        orchestrator = _orchestrator(config, github, [_turn("done"), _turn("## Summary")], writer)

        result = orchestrator.start_review_and_enhance(_request())

        assert orchestrator.get_session(result.session_id).status == STATUS_COMPLETED
        assert not (tmp_path / "backups").exists()

    def test_report_mode_appends_description(self, config, github, writer, tmp_path):
        orchestrator = _orchestrator(
            config,
            github,
            [_turn(REPORT), _turn("Here you go:\n\n## Summary\nAdds a cache layer.")],
            writer,
        )
        report_path = tmp_path / "review.md"

        result = orchestrator.start_review_and_enhance(_request(report_mode=True, report_path=str(report_path)))

        assert result.description_enhanced is True
        assert result.enhanced_description == "## Summary\nAdds a cache layer."
        text = report_path.read_text()
        assert "## Enhanced Description" in text
        assert text.endswith("## Summary\nAdds a cache layer.\n")
        assert not (tmp_path / "backups").exists()

    def test_review_only_skips_enhancement(self, config, github, writer):
        orchestrator = _orchestrator(config, github, [_turn("ok")], writer)
        result = orchestrator.start_review_and_enhance(_request(review_only=True))
        assert result.description_enhanced is False
        assert len(orchestrator.agent.instructions) == 1

    def test_disabled_in_config(self, config, github, writer):
        config["description_enhancement"]["enabled"] = False
        orchestrator = _orchestrator(config, github, [_turn("ok")], writer)
        result = orchestrator.start_review_and_enhance(_request())
        assert result.description_enhanced is False
        assert len(orchestrator.agent.instructions) == 1

    def test_enhance_description_only(self, config, github, writer):
        orchestrator = _orchestrator(
            config, github, [_turn("Sure!\n```markdown\n## Summary\nCache.\n```")], writer
        )
        result = orchestrator.enhance_description(_request())
        assert isinstance(result, EnhancementResult)
        assert result.enhanced_description == "## Summary\nCache."
        assert result.pr_id == 7
        assert "<enhancement-task>" in orchestrator.agent.instructions[0]
        assert "<review-task>" not in orchestrator.agent.instructions[0]


class TestResolution:
    def test_branch_lookup_fills_pr_id(self, config, writer):
        github = _FakeGitHub(pulls=[{**PR, "id": 3, "source_branch": "other"}, PR])
        orchestrator = _orchestrator(config, github, [_turn("ok")], writer)
        result = orchestrator.start_review(_request(pull_request_id=None, branch="feature/cache"))
        assert result.pr_id == 7
        assert "<pull_request_id>7</pull_request_id>" in orchestrator.agent.instructions[0]

    def test_branch_not_found_fails_session(self, config, github, writer):
        tracker = SessionTracker()
        orchestrator = _orchestrator(config, github, [_turn("ok")], writer, tracker=tracker)
        with pytest.raises(PRNotFoundError):
            orchestrator.start_review(_request(pull_request_id=None, branch="nope"))
        session = tracker.get_session(tracker.list_sessions()[0])
        assert session.status == STATUS_FAILED
        assert "nope" in session.error
        assert orchestrator.agent.instructions == []

    def test_lookup_failure_only_warns(self, config, writer):
        github = _FakeGitHub(fail_get=True)
        orchestrator = _orchestrator(config, github, [_turn("ok")], writer)
        result = orchestrator.start_review(_request())
        assert result.pr_id == 7
        assert orchestrator.get_session(result.session_id).status == STATUS_COMPLETED


def test_agent_failure_fails_session(config, github, writer, mocker):
    mocker.patch("prwarden_core.providers.base.time.sleep")
    tracker = SessionTracker()
    orchestrator = _orchestrator(config, github, [RuntimeError("overloaded")] * 3, writer, tracker=tracker)
    with pytest.raises(AgentError):
        orchestrator.start_review(_request())
    session = tracker.get_session(tracker.list_sessions()[0])
    assert session.status == STATUS_FAILED
    assert "AgentError" in session.error
