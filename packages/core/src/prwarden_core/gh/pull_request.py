from __future__ import annotations

from github import Auth, Github

# Characters of patch text returned per file before truncation.
MAX_PATCH_CHARS = 20000


def get_client(token: str, base_url: str | None = None) -> Github:
    if base_url:
        return Github(auth=Auth.Token(token), base_url=base_url)
    return Github(auth=Auth.Token(token))


def get_repo(client: Github, workspace: str, repository: str):
    return client.get_repo(f"{workspace}/{repository}")


def get_pull(repo, pr_number: int):
    return repo.get_pull(int(pr_number))


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state, sort="updated", direction="desc")


def get_diff(pr):
    return pr.get_files()


def pr_state(pr) -> str:
    """GitHub's open/closed plus the merged flag, as OPEN / MERGED / DECLINED."""
    if pr.state == "open":
        return "OPEN"
    return "MERGED" if pr.merged else "DECLINED"


def github_state(state: str | None) -> str:
    """Map an OPEN / MERGED / DECLINED / ALL filter onto GitHub's list filter."""
    state = (state or "OPEN").upper()
    if state == "OPEN":
        return "open"
    if state == "ALL":
        return "all"
    return "closed"


def pull_to_dict(pr, display_name: bool = True) -> dict:
    """Flatten a PyGithub PullRequest into the snake_case shape the resolver reads.

    The user attached to a listed PR is partial: reading ``name`` costs one
    GET /users/{login} per PR, so listings pass ``display_name=False`` and
    show the login instead.
    """
    user = pr.user
    author = "unknown"
    if user:
        author = (user.name or user.login) if display_name else user.login
    return {
        "id": pr.number,
        "title": pr.title,
        "description": pr.body or "",
        "state": pr_state(pr),
        "draft": bool(getattr(pr, "draft", False)),
        "author": author,
        "author_username": user.login if user else "unknown",
        "source_branch": pr.head.ref,
        "destination_branch": pr.base.ref,
        "head_sha": pr.head.sha,
        "created_on": pr.created_at.isoformat() if pr.created_at else None,
        "updated_on": pr.updated_at.isoformat() if pr.updated_at else None,
        "url": pr.html_url,
    }


def file_to_dict(f, max_chars: int = MAX_PATCH_CHARS) -> dict:
    patch = f.patch or ""
    if len(patch) > max_chars:
        patch = patch[:max_chars] + "\n... [diff truncated]"
    return {
        "path": f.filename,
        "status": f.status,
        "additions": f.additions,
        "deletions": f.deletions,
        "patch": patch,
    }


def review_comment_to_dict(c) -> dict:
    # c.line is None for comments whose line left the diff after a force-push.
    line = c.line if c.line is not None else getattr(c, "original_line", None)
    return {"path": c.path, "line": line, "author": c.user.login if c.user else None, "body": c.body}
