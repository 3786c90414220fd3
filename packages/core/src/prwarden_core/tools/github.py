"""GitHub operations exposed to the agent, backed by PyGithub.

``workspace`` is the repository owner (user or organization) and
``repository`` the repository name. Write operations honour dry-run by
returning what they would have done without calling GitHub.
"""

from __future__ import annotations

import logging

from github import GithubException

from prwarden_core.errors import ToolError
from prwarden_core.gh.pull_request import (
    file_to_dict,
    get_client,
    get_diff,
    get_pull,
    get_pull_requests,
    get_repo,
    github_state,
    pull_to_dict,
    review_comment_to_dict,
)
from prwarden_core.tools.base import Toolset, ToolSpec, schema

logger = logging.getLogger(__name__)

# Diff line types as the agent reports them, mapped to GitHub's diff side.
_LINE_SIDES = {"ADDED": "RIGHT", "CONTEXT": "RIGHT", "REMOVED": "LEFT"}
_MAX_SEARCH_RESULTS = 20

_REPO_ARGS = {
    "workspace": {"type": "string", "description": "Repository owner (user or organization)"},
    "repository": {"type": "string", "description": "Repository name"},
}
_PR_ARGS = {**_REPO_ARGS, "pull_request_id": {"type": "integer", "description": "Pull request number"}}
_PR_REQUIRED = ["workspace", "repository", "pull_request_id"]


class GitHubToolset(Toolset):
    name = "github"

    def __init__(self, token: str, base_url: str | None = None, dry_run: bool = False):
        self.client = get_client(token, base_url)
        self.dry_run = dry_run
        self._repos: dict[str, object] = {}

    def specs(self) -> list[ToolSpec]:
        return [
            ToolSpec(
                "get_pull_request",
                "Get PR details: title, description, author, branches, changed files and existing review comments.",
                schema(_PR_ARGS, _PR_REQUIRED),
            ),
            ToolSpec(
                "list_pull_requests",
                "List pull requests one page at a time. Returns values, start, limit and isLastPage.",
                schema(
                    {
                        **_REPO_ARGS,
                        "state": {"type": "string", "enum": ["OPEN", "MERGED", "DECLINED", "ALL"]},
                        "limit": {"type": "integer", "description": "Page size"},
                        "start": {"type": "integer", "description": "Offset of the first result"},
                    },
                    ["workspace", "repository"],
                ),
            ),
            ToolSpec(
                "get_pull_request_diff",
                "Get the patch of every changed file, or of one file when file_path is given.",
                schema({**_PR_ARGS, "file_path": {"type": "string"}}, _PR_REQUIRED),
            ),
            ToolSpec(
                "get_file_content",
                "Read a file from the repository at a branch, tag or commit (default branch when ref is omitted).",
                schema({**_REPO_ARGS, "file_path": {"type": "string"}, "ref": {"type": "string"}},
                       ["workspace", "repository", "file_path"]),
            ),
            ToolSpec(
                "list_directory_content",
                "List the files and directories under a path.",
                schema({**_REPO_ARGS, "path": {"type": "string"}, "ref": {"type": "string"}},
                       ["workspace", "repository"]),
            ),
            ToolSpec(
                "search_code",
                "Search the repository's code for a query string.",
                schema({**_REPO_ARGS, "query": {"type": "string"}}, ["workspace", "repository", "query"]),
            ),
            ToolSpec(
                "add_comment",
                "Post a comment on the PR. With file_path and line_number it is an inline comment on the diff.",
                schema(
                    {
                        **_PR_ARGS,
                        "comment_text": {"type": "string"},
                        "file_path": {"type": "string"},
                        "line_number": {"type": "integer"},
                        "line_type": {"type": "string", "enum": ["ADDED", "REMOVED", "CONTEXT"]},
                        "code_snippet": {"type": "string"},
                        "suggestion": {"type": "string"},
                    },
                    _PR_REQUIRED + ["comment_text"],
                ),
            ),
            ToolSpec(
                "approve_pull_request",
                "Approve the PR.",
                schema({**_PR_ARGS, "comment": {"type": "string"}}, _PR_REQUIRED),
            ),
            ToolSpec(
                "request_changes",
                "Request changes on the PR, blocking the merge.",
                schema({**_PR_ARGS, "comment": {"type": "string"}}, _PR_REQUIRED),
            ),
            ToolSpec(
                "update_pull_request",
                "Replace the PR description and optionally the title.",
                schema({**_PR_ARGS, "description": {"type": "string"}, "title": {"type": "string"}},
                       _PR_REQUIRED + ["description"]),
            ),
        ]

    # ------------------------------------------------------------------ #
    # Read operations                                                      #
    # ------------------------------------------------------------------ #

    def get_pull_request(self, workspace: str, repository: str, pull_request_id: int) -> dict:
        pr = self._pull(workspace, repository, pull_request_id)
        data = pull_to_dict(pr)
        data["files"] = [f.filename for f in get_diff(pr)]
        data["comments"] = [review_comment_to_dict(c) for c in pr.get_review_comments()]
        return data

    def list_pull_requests(
        self,
        workspace: str,
        repository: str,
        state: str = "OPEN",
        limit: int = 50,
        start: int = 0,
    ) -> dict:
        pulls = get_pull_requests(self._repo(workspace, repository), state=github_state(state))
        try:
            # One extra item tells us whether another page exists.
            items = list(pulls[start : start + limit + 1])
        except GithubException as e:
            raise ToolError(f"Could not list pull requests: {e}") from e
        page = items[:limit]
        return {
            "values": [pull_to_dict(pr, display_name=False) for pr in page],
            "start": start,
            "limit": limit,
            "size": len(page),
            "isLastPage": len(items) <= limit,
        }

    def get_pull_request_diff(
        self,
        workspace: str,
        repository: str,
        pull_request_id: int,
        file_path: str | None = None,
    ) -> dict:
        pr = self._pull(workspace, repository, pull_request_id)
        files = [file_to_dict(f) for f in get_diff(pr) if file_path is None or f.filename == file_path]
        if file_path is not None and not files:
            raise ToolError(f"{file_path} is not changed in PR #{pull_request_id}")
        return {"pull_request_id": pull_request_id, "files": files}

    def get_file_content(self, workspace: str, repository: str, file_path: str, ref: str | None = None) -> dict:
        repo = self._repo(workspace, repository)
        try:
            contents = repo.get_contents(file_path, ref=ref) if ref else repo.get_contents(file_path)
        except GithubException as e:
            raise ToolError(f"Could not fetch {file_path}: {e}") from e
        if isinstance(contents, list):
            raise ToolError(f"{file_path} is a directory; use list_directory_content")
        return {
            "path": file_path,
            "ref": ref,
            "content": contents.decoded_content.decode("utf-8", errors="replace"),
        }

    def list_directory_content(self, workspace: str, repository: str, path: str = "", ref: str | None = None) -> dict:
        repo = self._repo(workspace, repository)
        try:
            contents = repo.get_contents(path, ref=ref) if ref else repo.get_contents(path)
        except GithubException as e:
            raise ToolError(f"Could not list {path or '/'}: {e}") from e
        if not isinstance(contents, list):
            contents = [contents]
        return {"path": path, "entries": [{"name": c.name, "path": c.path, "type": c.type} for c in contents]}

    def search_code(self, workspace: str, repository: str, query: str) -> dict:
        try:
            results = self.client.search_code(query=f"{query} repo:{workspace}/{repository}")
            matches = [{"path": r.path, "url": r.html_url} for r in results[:_MAX_SEARCH_RESULTS]]
        except GithubException as e:
            raise ToolError(f"Code search failed: {e}") from e
        return {"query": query, "matches": matches}

    # ------------------------------------------------------------------ #
    # Write operations                                                     #
    # ------------------------------------------------------------------ #

    def add_comment(
        self,
        workspace: str,
        repository: str,
        pull_request_id: int,
        comment_text: str,
        file_path: str | None = None,
        line_number: int | None = None,
        line_type: str = "ADDED",
        code_snippet: str | None = None,
        suggestion: str | None = None,
    ) -> dict:
        body = comment_text
        if suggestion:
            body += f"\n\n**Suggested fix:**\n```suggestion\n{suggestion}\n```"
        inline = bool(file_path and line_number)
        if self.dry_run:
            return self._simulated("add_comment", file_path=file_path, line_number=line_number, body=body)

        pr = self._pull(workspace, repository, pull_request_id)
        try:
            if inline:
                side = _LINE_SIDES.get((line_type or "ADDED").upper(), "RIGHT")
                commit = self._repo(workspace, repository).get_commit(pr.head.sha)
                comment = pr.create_review_comment(body, commit, file_path, line=int(line_number), side=side)
            else:
                comment = pr.create_issue_comment(body)
        except GithubException as e:
            raise ToolError(f"Could not post comment on PR #{pull_request_id}: {e}") from e
        return {"id": comment.id, "inline": inline, "file_path": file_path, "line_number": line_number}

    def approve_pull_request(self, workspace: str, repository: str, pull_request_id: int, comment: str = "") -> dict:
        return self._review(workspace, repository, pull_request_id, "APPROVE", comment)

    def request_changes(self, workspace: str, repository: str, pull_request_id: int, comment: str = "") -> dict:
        return self._review(
            workspace, repository, pull_request_id, "REQUEST_CHANGES", comment or "Changes requested."
        )

    def update_pull_request(
        self,
        workspace: str,
        repository: str,
        pull_request_id: int,
        description: str,
        title: str | None = None,
    ) -> dict:
        if self.dry_run:
            return self._simulated("update_pull_request", description=description, title=title)
        pr = self._pull(workspace, repository, pull_request_id)
        try:
            if title:
                pr.edit(title=title, body=description)
            else:
                pr.edit(body=description)
        except GithubException as e:
            raise ToolError(f"Could not update PR #{pull_request_id}: {e}") from e
        return {"pull_request_id": pull_request_id, "updated": True}

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _review(self, workspace: str, repository: str, pull_request_id: int, event: str, body: str) -> dict:
        if self.dry_run:
            return self._simulated(event.lower(), body=body)
        pr = self._pull(workspace, repository, pull_request_id)
        try:
            review = pr.create_review(body=body, event=event)
        except GithubException as e:
            raise ToolError(f"Could not submit {event} review on PR #{pull_request_id}: {e}") from e
        return {"id": review.id, "event": event}

    def _simulated(self, action: str, **details) -> dict:
        logger.info("Dry run: skipped %s", action)
        return {"dry_run": True, "action": action, **details}

    def _repo(self, workspace: str, repository: str):
        key = f"{workspace}/{repository}"
        if key not in self._repos:
            try:
                self._repos[key] = get_repo(self.client, workspace, repository)
            except GithubException as e:
                raise ToolError(f"Repository {key} not accessible: {e}") from e
        return self._repos[key]

    def _pull(self, workspace: str, repository: str, pull_request_id: int):
        try:
            return get_pull(self._repo(workspace, repository), pull_request_id)
        except GithubException as e:
            raise ToolError(f"PR #{pull_request_id} not found in {workspace}/{repository}: {e}") from e
