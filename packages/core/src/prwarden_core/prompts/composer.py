"""Compose the full instruction document handed to the agent.

Layers, in order: base template, project configuration, project standards,
learned knowledge, task block. Optional layers that cannot be loaded are
left out; composing never fails because of them.
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path

from prwarden_core.models import ReviewRequest
from prwarden_core.prompts.templates import (
    ENHANCEMENT_SYSTEM_PROMPT,
    REPORT_ENHANCEMENT_PROMPT,
    REVIEW_SYSTEM_PROMPT,
    report_system_prompt,
)

logger = logging.getLogger(__name__)

STANDARDS_FILES = ("review-standards.md", "security-guidelines.md", "coding-conventions.md")
PR_ID_SENTINEL = "find-by-branch"

_XML_ESCAPES = (("&", "&amp;"), ("<", "&lt;"), (">", "&gt;"), ('"', "&quot;"), ("'", "&apos;"))


class Mode(enum.Enum):
    REVIEW = "review"
    REVIEW_REPORT = "review-report"
    ENHANCE = "enhance"
    ENHANCE_REPORT = "enhance-report"

    @property
    def is_review(self) -> bool:
        return self in (Mode.REVIEW, Mode.REVIEW_REPORT)

    @property
    def is_report(self) -> bool:
        return self in (Mode.REVIEW_REPORT, Mode.ENHANCE_REPORT)


def mode_for(request: ReviewRequest, enhance: bool = False) -> Mode:
    if enhance:
        return Mode.ENHANCE_REPORT if request.report_mode else Mode.ENHANCE
    return Mode.REVIEW_REPORT if request.report_mode else Mode.REVIEW


def escape_xml(text) -> str:
    """Escape the five XML special characters. ``&`` goes first so nothing is escaped twice."""
    text = "" if text is None else str(text)
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def _xml_bool(value) -> str:
    return "true" if value else "false"


def _base_template(mode: Mode, request: ReviewRequest) -> str:
    if mode is Mode.REVIEW:
        return REVIEW_SYSTEM_PROMPT
    if mode is Mode.REVIEW_REPORT:
        return report_system_prompt(request.report_format)
    if mode is Mode.ENHANCE:
        return ENHANCEMENT_SYSTEM_PROMPT
    return REPORT_ENHANCEMENT_PROMPT


def build_review_config_xml(config: dict) -> str:
    review = config.get("review", {})

    focus_areas = "\n".join(
        f'    <focus-area priority="{escape_xml(area.get("priority", ""))}">\n'
        f"      <name>{escape_xml(area.get('name', ''))}</name>\n"
        f"      <description>{escape_xml(area.get('description', ''))}</description>\n"
        f"    </focus-area>"
        for area in review.get("focus_areas") or []
    )
    criteria = "\n".join(
        "    <criterion>\n"
        f"      <condition>{escape_xml(c.get('condition', ''))}</condition>\n"
        f"      <action>{escape_xml(c.get('action', ''))}</action>\n"
        f"      <reason>{escape_xml(c.get('reason', ''))}</reason>\n"
        "    </criterion>"
        for c in review.get("blocking_criteria") or []
    )
    exclusions = "\n".join(
        f"    <pattern>{escape_xml(pattern)}</pattern>" for pattern in review.get("exclude_patterns") or []
    )
    prefs = review.get("tool_preferences") or {}

    return f"""\
  <workflow-instructions>
{escape_xml(review.get("workflow_instructions", ""))}
  </workflow-instructions>

  <focus-areas>
{focus_areas}
  </focus-areas>

  <blocking-criteria>
{criteria}
  </blocking-criteria>

  <file-exclusions>
{exclusions}
  </file-exclusions>

  <tool-preferences>
    <lazy-loading>{_xml_bool(prefs.get("lazy_loading"))}</lazy-loading>
    <cache-results>{_xml_bool(prefs.get("cache_tool_results"))}</cache-results>
    <enable-code-search>{_xml_bool(prefs.get("enable_code_search"))}</enable-code-search>
    <enable-directory-listing>{_xml_bool(prefs.get("enable_directory_listing"))}</enable-directory-listing>
    <max-tool-calls-per-file>{escape_xml(prefs.get("max_tool_calls_per_file", ""))}</max-tool-calls-per-file>
  </tool-preferences>

  <context-settings>
    <context-lines>{escape_xml(review.get("context_lines", ""))}</context-lines>
    <max-files-per-review>{escape_xml(review.get("max_files_per_review", ""))}</max-files-per-review>
  </context-settings>"""


def build_enhancement_config_xml(config: dict) -> str:
    enhancement = config.get("description_enhancement", {})
    sections = "\n".join(
        f'    <section key="{escape_xml(s.get("key", ""))}" required="{_xml_bool(s.get("required"))}">\n'
        f"      <name>{escape_xml(s.get('name', ''))}</name>\n"
        f"      <description>{escape_xml(s.get('description', ''))}</description>\n"
        "    </section>"
        for s in enhancement.get("required_sections") or []
    )
    return f"""\
  <enhancement-instructions>
{escape_xml(enhancement.get("instructions", ""))}
  </enhancement-instructions>

  <required-sections>
{sections}
  </required-sections>

  <settings>
    <preserve-content>{_xml_bool(enhancement.get("preserve_content"))}</preserve-content>
    <auto-format>{_xml_bool(enhancement.get("auto_format"))}</auto-format>
  </settings>"""


def load_project_standards(config: dict, cwd: str | Path | None = None) -> str | None:
    """Concatenate the standards files found under ``custom_prompts_path``.

    Returns None when the path is unset, no file exists, or none is readable.
    """
    prompts_path = (config.get("project_standards") or {}).get("custom_prompts_path")
    if not prompts_path:
        return None

    base = Path(cwd) if cwd is not None else Path.cwd()
    loaded = []
    for name in STANDARDS_FILES:
        path = base / prompts_path / name
        if not path.is_file():
            continue
        try:
            loaded.append(f"## From {name}\n\n{path.read_text(encoding='utf-8')}")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Skipping unreadable standards file %s: %s", path, e)

    if not loaded:
        return None
    return (
        "These are project-specific standards from the repository configuration.\n"
        "Follow them in addition to the general focus areas:\n\n" + "\n\n---\n\n".join(loaded)
    )


def load_knowledge_base(config: dict, cwd: str | Path | None = None) -> str | None:
    kb = config.get("knowledge_base") or {}
    if not kb.get("enabled") or not kb.get("path"):
        return None

    path = Path(kb["path"])
    if not path.is_absolute():
        path = (Path(cwd) if cwd is not None else Path.cwd()) / path
    try:
        content = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Knowledge base not loaded from %s: %s", path, e)
        return None
    return content or None


def _review_steps(request: ReviewRequest, report: bool) -> str:
    if report:
        steps = [
            "Call get_pull_request() to read PR details",
            "Analyze files one by one using get_pull_request_diff()",
            "Use search_code() to understand context when needed",
            "Track all issues found during analysis",
            "After ALL files are analyzed, output the complete report in the format from your system instructions",
        ]
        mode_line = (
            "DRY RUN MODE: Simulate actions only, do not post real comments."
            if request.dry_run
            else "LIVE MODE: Analyze files and generate the report."
        )
    else:
        steps = [
            "Call get_pull_request() to read PR details and existing comments",
            "Analyze files one by one using get_pull_request_diff()",
            "Use search_code() BEFORE commenting on unfamiliar code",
            "Post comments immediately with add_comment() using line_number and line_type from the diff",
            "Apply the blocking criteria to make the final decision",
            "Call approve_pull_request() or request_changes()",
            "Finish with a summary that includes the Statistics section",
        ]
        mode_line = (
            "DRY RUN MODE: Simulate actions only, do not post real comments."
            if request.dry_run
            else "LIVE MODE: Post real comments and make real decisions."
        )
    return _numbered("Begin your autonomous code review now.", steps, mode_line)


def _enhancement_steps(request: ReviewRequest, report: bool) -> str:
    steps = [
        "Call get_pull_request() to read the PR and its current description",
        "Call get_pull_request_diff() to analyze the code changes",
        "Use search_code() to find configuration patterns and API changes",
        "Extract the information for each required section",
        "Build the enhanced description following the section structure",
    ]
    if report:
        steps.append("OUTPUT THE DESCRIPTION DIRECTLY. Do NOT call update_pull_request(), it is blocked")
        closing = (
            "Output plain markdown, not wrapped in a code block. "
            "The description is captured and appended to the review report."
        )
        mode_line = "DRY RUN MODE: Simulate only." if request.dry_run else "LIVE MODE: The description goes into the report file."
    else:
        steps.append("Call update_pull_request() with the enhanced description")
        closing = "Return ONLY the enhanced description markdown, starting directly with the first section."
        mode_line = (
            "DRY RUN MODE: Simulate only, do not actually update the PR."
            if request.dry_run
            else "LIVE MODE: Update the actual PR description."
        )
    return _numbered("Enhance the PR description now.", steps, f"{closing}\n\n{mode_line}")


def _numbered(heading: str, steps: list[str], footer: str) -> str:
    body = "\n".join(f"{i}. {step}" for i, step in enumerate(steps, start=1))
    return f"{heading}\n\n{body}\n\n{footer}"


def _task_block(tag: str, request: ReviewRequest, instructions: str) -> str:
    pr_id = request.pull_request_id if request.pull_request_id else PR_ID_SENTINEL
    return f"""\
<{tag}>
  <workspace>{escape_xml(request.workspace)}</workspace>
  <repository>{escape_xml(request.repository)}</repository>
  <pull_request_id>{escape_xml(pr_id)}</pull_request_id>
  <branch>{escape_xml(request.branch or "N/A")}</branch>
  <mode>{"dry-run" if request.dry_run else "live"}</mode>

  <instructions>
{instructions}
  </instructions>
</{tag}>"""


def compose(mode: Mode, request: ReviewRequest, config: dict, cwd: str | Path | None = None) -> str:
    """Build the instruction document for ``mode``.

    Review modes get the project standards and learned knowledge layers;
    enhancement modes only the enhancement configuration.
    """
    parts = [_base_template(mode, request).strip()]

    if mode.is_review:
        parts.append(f"<project-configuration>\n{build_review_config_xml(config)}\n</project-configuration>")
        standards = load_project_standards(config, cwd)
        if standards:
            parts.append(f"<project-standards>\n{standards}\n</project-standards>")
        knowledge = load_knowledge_base(config, cwd)
        if knowledge:
            parts.append(f"<learned-knowledge>\n{knowledge}\n</learned-knowledge>")
        parts.append(_task_block("review-task", request, _review_steps(request, mode.is_report)))
    else:
        parts.append(f"<project-configuration>\n{build_enhancement_config_xml(config)}\n</project-configuration>")
        parts.append(_task_block("enhancement-task", request, _enhancement_steps(request, mode.is_report)))

    return "\n\n".join(parts)
