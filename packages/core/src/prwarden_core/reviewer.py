"""Review orchestration: one session per run, one or two agent phases.

    create session → resolve PR (display only) → compose → agent.generate()
        → interpret → write report (report mode)
        → [compose enhancement → agent.generate() in the same session]
        → complete session

Any fatal error fails the session and is re-raised to the caller. Report,
append and backup writes are best effort: they are logged and never fail
a review that otherwise succeeded.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import time

from rich.console import Console
from rich.panel import Panel

from prwarden_core.config import TOOL_VERSION
from prwarden_core.errors import ToolError
from prwarden_core.interpreter import (
    estimate_cost,
    extract_enhanced_description,
    interpret_review,
    parse_token_usage,
)
from prwarden_core.models import (
    APPROVED,
    BLOCKED,
    EnhancementResult,
    PRDisplayInfo,
    ReviewRequest,
    ReviewResult,
    TokenUsage,
    ToolCallRecord,
)
from prwarden_core.prompts.composer import compose, mode_for
from prwarden_core.providers.base import AgentContext, BaseAgent
from prwarden_core.providers.factory import get_agent
from prwarden_core.reporting import ReportWriter
from prwarden_core.resolver import resolve_pull_request, unwrap_tool_response
from prwarden_core.session import SessionTracker
from prwarden_core.tools.registry import ToolRegistry, build_registry

console = Console()
logger = logging.getLogger(__name__)

_DECISION_STYLE = {
    APPROVED: "[green]✅ APPROVED[/green]",
    BLOCKED: "[red]🚫 BLOCKED[/red]",
}


def _format_decision(decision: str) -> str:
    return _DECISION_STYLE.get(decision, "[yellow]⚠️  CHANGES REQUESTED[/yellow]")


class ReviewOrchestrator:
    """Runs reviews and description enhancements against one configuration.

    ``agent``, ``registry_factory``, ``tracker`` and ``report_writer`` default
    to the real implementations; tests pass stand-ins.
    """

    def __init__(
        self,
        config: dict,
        agent: BaseAgent | None = None,
        registry_factory=build_registry,
        tracker: SessionTracker | None = None,
        report_writer: ReportWriter | None = None,
        cwd: str | None = None,
    ):
        self.config = config
        self.agent = agent if agent is not None else get_agent(config)
        self.registry_factory = registry_factory
        self.tracker = tracker or SessionTracker()
        self.reports = report_writer or ReportWriter()
        self.cwd = cwd
        if config.get("display", {}).get("show_banner"):
            self._print_banner()

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def start_review(self, request: ReviewRequest) -> ReviewResult:
        return self._run(request, enhance=False)

    def start_review_and_enhance(self, request: ReviewRequest) -> ReviewResult:
        """Review, then rewrite the description in the same agent conversation."""
        return self._run(request, enhance=True)

    def enhance_description(self, request: ReviewRequest) -> EnhancementResult:
        """Rewrite the PR description without reviewing the code."""
        started = time.monotonic()
        session_id = self._create_session(request)
        console.print("\n[bold]📝 Enhancing PR description...[/bold]\n")
        try:
            registry = self.registry_factory(self.config, report_mode=request.report_mode, dry_run=request.dry_run)
            request = self._resolve(request, registry)
            if not request.report_mode:
                self._backup_description(session_id, request, registry)

            content, usage, cost = self._generate(session_id, request, registry, enhance=True)
            result = EnhancementResult(
                pr_id=request.pull_request_id or 0,
                session_id=session_id,
                duration=round(time.monotonic() - started),
                token_usage=usage,
                cost_estimate=cost,
                enhanced_description=extract_enhanced_description(content),
            )
            self.tracker.complete_session(session_id, result)
            console.print("[green]✅ Description enhanced successfully[/green]\n")
            return result
        except Exception as e:
            self.tracker.fail_session(session_id, e)
            console.print(f"\n[red]❌ Description enhancement failed: {e}[/red]")
            raise
        finally:
            self.agent.forget(session_id)

    def get_session(self, session_id: str):
        return self.tracker.get_session(session_id)

    def get_session_stats(self, session_id: str) -> dict:
        return self.tracker.get_stats(session_id)

    def export_session(self, session_id: str) -> dict:
        return self.tracker.export_session(session_id)

    # ------------------------------------------------------------------ #
    # Phases                                                               #
    # ------------------------------------------------------------------ #

    def _run(self, request: ReviewRequest, enhance: bool) -> ReviewResult:
        started = time.monotonic()
        session_id = self._create_session(request)
        self._print_session_start(request, session_id)

        try:
            registry = self.registry_factory(self.config, report_mode=request.report_mode, dry_run=request.dry_run)
            request = self._resolve(request, registry)

            phase = "Phase 1: " if enhance else ""
            console.print(f"🤖 {phase}Starting autonomous AI code review...")
            if request.report_mode:
                console.print("   [dim]AI will analyze code and generate a report[/dim]\n")
            else:
                console.print("   [dim]AI will analyze files, post comments and decide[/dim]\n")

            content, usage, cost = self._generate(session_id, request, registry, enhance=False)
            result = interpret_review(
                content,
                {"input_tokens": usage.input, "output_tokens": usage.output, "total_tokens": usage.total},
                self.tracker.get_session(session_id),
                request.pull_request_id,
                started,
                self._rates(),
            )
            if request.report_mode:
                result.report_path = self._write_report(content, request)

            if enhance:
                self._enhancement_phase(session_id, request, registry, result)

            result.duration = round(time.monotonic() - started)
            self.tracker.complete_session(session_id, result)
            self._print_complete(result)
            return result
        except Exception as e:
            self.tracker.fail_session(session_id, e)
            console.print(f"\n[red]❌ Review failed: {e}[/red]")
            raise
        finally:
            self.agent.forget(session_id)

    def _enhancement_phase(
        self,
        session_id: str,
        request: ReviewRequest,
        registry: ToolRegistry,
        result: ReviewResult,
    ) -> None:
        console.print("\n[green]✅ Phase 1 complete: code review finished[/green]")
        console.print(f"   Decision: {_format_decision(result.decision)}")
        if request.report_mode:
            console.print(f"   Report: {result.report_path}\n")
        else:
            console.print(f"   Comments: {result.statistics.comments_posted}\n")

        if request.review_only:
            console.print("[dim]⏭️  Skipping description enhancement (review-only mode)[/dim]\n")
            result.description_enhanced = False
            return
        if not self.config.get("description_enhancement", {}).get("enabled", True):
            console.print("[dim]⏭️  Skipping description enhancement (disabled in config)[/dim]\n")
            result.description_enhanced = False
            return

        console.print("📝 Phase 2: Enhancing PR description...")
        console.print("   [dim]AI will use review insights to write the description[/dim]\n")
        if not request.report_mode:
            self._backup_description(session_id, request, registry)

        content, usage, cost = self._generate(session_id, request, registry, enhance=True)
        result.token_usage = TokenUsage(
            input=result.token_usage.input + usage.input,
            output=result.token_usage.output + usage.output,
            total=result.token_usage.total + usage.total,
        )
        result.cost_estimate = round(result.cost_estimate + cost, 4)

        if request.report_mode:
            description = extract_enhanced_description(content)
            result.enhanced_description = description
            if result.report_path and description:
                self._append_description(result.report_path, description)

        result.description_enhanced = True
        console.print("[green]✅ Phase 2 complete: description enhanced[/green]\n")

    def _generate(
        self,
        session_id: str,
        request: ReviewRequest,
        registry: ToolRegistry,
        enhance: bool,
    ) -> tuple[str, TokenUsage, float]:
        instructions = compose(mode_for(request, enhance=enhance), request, self.config, self.cwd)
        if self.config.get("display", {}).get("verbose_tool_calls"):
            console.print(f"[dim]📝 Instructions built: {len(instructions)} characters[/dim]")

        context = AgentContext(session_id=session_id, operation="description-enhancement" if enhance else "code-review")
        response = self.agent.generate(instructions, context, registry, self._recorder(session_id))

        usage = parse_token_usage(response.usage)
        cost = estimate_cost(usage, *self._rates())
        self.tracker.add_usage(session_id, usage, cost)
        return response.content, usage, cost

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _create_session(self, request: ReviewRequest) -> str:
        ai = self.config.get("ai", {})
        return self.tracker.create_session(
            request,
            ai_provider=ai.get("provider", ""),
            ai_model=ai.get("model") or self.agent.model,
        )

    def _rates(self) -> tuple[float, float]:
        ai = self.config.get("ai", {})
        return ai.get("input_cost_per_million", 0.25), ai.get("output_cost_per_million", 1.0)

    def _recorder(self, session_id: str):
        record = functools.partial(self.tracker.record_tool_call, session_id)
        if not self.config.get("display", {}).get("verbose_tool_calls"):
            return record

        def _record_and_print(call: ToolCallRecord) -> None:
            record(call)
            status = f"[red]{call.error}[/red]" if call.error else "[green]ok[/green]"
            console.print(f"  [dim]🔧 {call.tool_name} ({call.duration_ms:.0f}ms)[/dim] {status}")

        return _record_and_print

    def _resolve(self, request: ReviewRequest, registry: ToolRegistry) -> ReviewRequest:
        """Fetch and show the PR; fill in its id when found by branch.

        PRNotFoundError propagates. Other lookup failures only mean the agent
        resolves the PR itself.
        """
        try:
            info = resolve_pull_request(request, registry.invoke)
        except ToolError as e:
            logger.warning("Could not fetch PR info: %s", e)
            info = None

        if info is None:
            console.print("[yellow]⚠️  Could not fetch PR information before the review starts.[/yellow]")
            console.print("   [dim]The AI will attempt to resolve PR details itself.[/dim]\n")
            return request

        self._print_pr_info(info)
        if not request.pull_request_id and info.id:
            return dataclasses.replace(request, pull_request_id=int(info.id))
        return request

    def _write_report(self, content: str, request: ReviewRequest) -> str | None:
        path = request.report_path or self.reports.default_report_path(
            request.pull_request_id or "unknown", request.report_format, repository=request.repository
        )
        try:
            written = self.reports.write_report(content, request.report_format, path)
        except OSError as e:
            logger.warning("Failed to write report to %s: %s", path, e)
            console.print(f"[yellow]⚠️  Failed to write report: {e}[/yellow]")
            return None
        if written != "-":
            console.print(f"\n📄 Report written to: [bold]{written}[/bold]")
        return written

    def _append_description(self, report_path: str, description: str) -> None:
        try:
            self.reports.append_enhanced_description(report_path, description)
            console.print("   📝 Enhanced description appended to report")
        except OSError as e:
            logger.warning("Failed to append enhanced description to %s: %s", report_path, e)
            console.print(f"   [yellow]⚠️  Failed to append enhanced description to report: {e}[/yellow]")

    def _backup_description(self, session_id: str, request: ReviewRequest, registry: ToolRegistry) -> None:
        """Save the current description before the agent overwrites it."""
        try:
            description = self._original_description(session_id, request, registry)
            if not description:
                console.print("   [yellow]⚠️  Original PR description is empty, skipping backup[/yellow]")
                return
            path = self.reports.write_description_backup(request.pull_request_id or "unknown", description)
            console.print(f"   💾 Original description backed up to: {path}")
        except (OSError, ToolError) as e:
            logger.warning("Failed to back up original description: %s", e)
            console.print(f"   [yellow]⚠️  Failed to back up original description: {e}[/yellow]")

    def _original_description(self, session_id: str, request: ReviewRequest, registry: ToolRegistry) -> str:
        for call in self.tracker.get_session(session_id).tool_calls:
            if call.tool_name == "get_pull_request" and call.error is None and call.result:
                data = unwrap_tool_response(call.result)
                if isinstance(data, dict):
                    return _description_of(data)

        if not request.pull_request_id:
            return ""
        data = unwrap_tool_response(
            registry.invoke(
                "get_pull_request",
                {
                    "workspace": request.workspace,
                    "repository": request.repository,
                    "pull_request_id": request.pull_request_id,
                },
            )
        )
        return _description_of(data) if isinstance(data, dict) else ""

    # ------------------------------------------------------------------ #
    # Display                                                              #
    # ------------------------------------------------------------------ #

    def _print_banner(self) -> None:
        console.print(
            Panel.fit(
                f"[bold]prwarden[/bold] {TOOL_VERSION}\nAutonomous AI pull request review",
                border_style="cyan",
            )
        )

    def _print_pr_info(self, info: PRDisplayInfo) -> None:
        created = info.created_date
        if hasattr(created, "strftime"):
            created = created.strftime("%Y-%m-%d %H:%M")
        lines = [
            f"[bold]#{info.id}[/bold] {info.title}",
            f"Author: {info.author.display_name} ({info.author.name})",
            f"Branch: {info.source_branch} → {info.destination_branch}",
            f"State:  {info.state}",
        ]
        if created:
            lines.append(f"Created: {created}")
        console.print(Panel("\n".join(lines), title="Pull Request", border_style="blue"))

    def _print_session_start(self, request: ReviewRequest, session_id: str) -> None:
        modes = []
        if request.dry_run:
            modes.append("🔵 DRY RUN")
        if request.report_mode:
            modes.append("📄 REPORT")
        if request.review_only:
            modes.append("🔍 REVIEW-ONLY")
        console.print(f"\n[bold]📋 Review session started[/bold] [dim]{session_id}[/dim]")
        console.print(f"   Repository: {request.workspace}/{request.repository}")
        console.print(f"   PR: {request.pull_request_id or request.branch}")
        console.print(f"   Mode: {' | '.join(modes) or '🔴 LIVE'}\n")

    def _print_complete(self, result: ReviewResult) -> None:
        stats = result.statistics
        issues = stats.issues_found
        console.print("\n[bold green]✅ Review completed[/bold green]")
        console.print(f"   Decision: {_format_decision(result.decision)}")
        console.print(f"   Duration: {result.duration}s")
        console.print(f"   Files reviewed: {stats.files_reviewed}")
        console.print(
            f"   Issues: 🔒 {issues.critical}  ⚠️  {issues.major}  💡 {issues.minor}  💬 {issues.suggestions}"
        )
        console.print(f"   Tool calls: {stats.tool_calls_made} ({stats.comments_posted} comment(s) posted)")
        if result.report_path:
            console.print(f"   Report: {result.report_path}")
        if result.enhanced_description:
            console.print("   Enhanced description: added to report")
        console.print(f"   Tokens: {result.token_usage.total:,}  Cost estimate: ${result.cost_estimate:.4f}\n")


def _description_of(pr: dict) -> str:
    # Some servers nest the PR under "data"; anything else there is ignored.
    nested = pr.get("data")
    if not isinstance(nested, dict):
        nested = {}
    description = pr.get("description") or nested.get("description")
    return description if isinstance(description, str) else ""
