"""Optional Jira lookups so the agent can check a PR against its ticket.

Talks to the Jira Cloud REST API v3 with basic auth (email + API token)
through a retrying ``requests.Session``.
"""

from __future__ import annotations

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from prwarden_core.errors import ToolError, ToolServerError
from prwarden_core.tools.base import Toolset, ToolSpec, schema

logger = logging.getLogger(__name__)

_ISSUE_FIELDS = "summary,status,issuetype,priority,assignee,description"
_MAX_SEARCH_RESULTS = 20


class JiraToolset(Toolset):
    name = "jira"

    DEFAULT_TIMEOUT = 30
    RETRY_COUNT = 3
    BACKOFF_FACTOR = 0.5

    def __init__(self, base_url: str, email: str, api_token: str):
        if not (base_url and email and api_token):
            raise ToolServerError("Jira needs JIRA_BASE_URL, JIRA_EMAIL and JIRA_API_TOKEN.")
        self.base_url = base_url.rstrip("/")
        self._session = self._create_session(email, api_token)

    def _create_session(self, email: str, api_token: str) -> requests.Session:
        session = requests.Session()
        session.auth = (email, api_token)
        session.headers.update({"Accept": "application/json"})
        retry_strategy = Retry(
            total=self.RETRY_COUNT,
            backoff_factor=self.BACKOFF_FACTOR,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def specs(self) -> list[ToolSpec]:
        return [
            ToolSpec(
                "get_jira_issue",
                "Get a Jira issue by key (e.g. PROJ-123): summary, status, type, priority, assignee, description.",
                schema({"issue_key": {"type": "string"}}, ["issue_key"]),
            ),
            ToolSpec(
                "search_jira_issues",
                "Search Jira issues with a JQL query.",
                schema({"jql": {"type": "string"}, "max_results": {"type": "integer"}}, ["jql"]),
            ),
        ]

    def get_jira_issue(self, issue_key: str) -> dict:
        data = self._get(f"/rest/api/3/issue/{issue_key}", params={"fields": _ISSUE_FIELDS})
        return _issue_to_dict(data)

    def search_jira_issues(self, jql: str, max_results: int = _MAX_SEARCH_RESULTS) -> dict:
        data = self._get(
            "/rest/api/3/search",
            params={"jql": jql, "maxResults": min(max_results, _MAX_SEARCH_RESULTS), "fields": _ISSUE_FIELDS},
        )
        issues = data.get("issues", [])
        return {"total": data.get("total", len(issues)), "issues": [_issue_to_dict(i) for i in issues]}

    def _get(self, path: str, params: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self.DEFAULT_TIMEOUT)
        except requests.RequestException as e:
            raise ToolError(f"Jira request failed: {e}") from e
        if response.status_code == 404:
            raise ToolError(f"Jira resource not found: {path}")
        if not response.ok:
            raise ToolError(f"Jira returned {response.status_code}: {response.text[:200]}")
        return response.json()


def _issue_to_dict(issue: dict) -> dict:
    fields = issue.get("fields") or {}

    def _name(key: str, attr: str = "name"):
        value = fields.get(key)
        return value.get(attr) if isinstance(value, dict) else None

    return {
        "key": issue.get("key"),
        "summary": fields.get("summary"),
        "status": _name("status"),
        "type": _name("issuetype"),
        "priority": _name("priority"),
        "assignee": _name("assignee", "displayName"),
        # v3 returns rich-text documents; passed through for the model to read.
        "description": fields.get("description"),
    }
