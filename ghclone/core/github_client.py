"""GitHub GraphQL operations: page-at-a-time repository listing."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx
from pydantic import ValidationError

from .constants import GITHUB_API_ACCEPT, GRAPHQL_URL, HTTP_TIMEOUT_SEC, PAGE_SIZE, USER_AGENT
from .errors import ApiError, TransportError
from .types import Page, RepositoryRecord

logger = logging.getLogger(__name__)

VIEWER_REPOS_QUERY = """
query($first: Int!, $after: String) {
  viewer {
    repositories(first: $first, after: $after, ownerAffiliations: OWNER,
                 orderBy: {field: NAME, direction: ASC}) {
      nodes { name sshUrl url isArchived isFork }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""


class GitHubClient:
    def __init__(
        self,
        token: str,
        *,
        url: str = GRAPHQL_URL,
        timeout: float = HTTP_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.url = url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": GITHUB_API_ACCEPT,
                "User-Agent": USER_AGENT,
                "Authorization": f"Bearer {token}",
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ---------- low-level HTTP ----------
    async def _post_query(self, variables: dict[str, Any]) -> Any:
        payload = {"query": VIEWER_REPOS_QUERY, "variables": variables}
        try:
            resp = await self._client.post(self.url, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"request to {self.url} failed: {e!r}") from e
        if resp.status_code >= 400:
            raise TransportError(f"HTTP {resp.status_code} from {self.url}: {resp.text[:300]}")
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError("malformed page: response is not JSON") from e

    # ---------- public API ----------
    async def fetch_page(self, cursor: str | None = None) -> Page:
        """Request one page of the viewer's repositories starting after ``cursor``."""
        data = await self._post_query({"first": PAGE_SIZE, "after": cursor})
        if not isinstance(data, dict):
            raise ApiError("malformed page: expected a JSON object")

        errors = data.get("errors")
        if errors:
            messages = [str(err.get("message")) if isinstance(err, dict) else str(err) for err in errors]
            raise ApiError(f"GraphQL error: {', '.join(messages)}", messages)

        try:
            conn = data["data"]["viewer"]["repositories"]
            nodes = conn["nodes"]
            info = conn["pageInfo"]
            records = [RepositoryRecord.model_validate(n) for n in nodes]
            has_next = info["hasNextPage"]
            end_cursor = info.get("endCursor")
        except (KeyError, TypeError, AttributeError) as e:
            raise ApiError(f"malformed page: missing {e}") from e
        except ValidationError as e:
            raise ApiError(f"malformed page: {e.error_count()} invalid repository record(s)") from e

        if not isinstance(has_next, bool):
            raise ApiError("malformed page: hasNextPage is not a boolean")
        if has_next and not end_cursor:
            raise ApiError("malformed page: hasNextPage without endCursor")
        return Page(records=records, has_next=has_next, cursor=end_cursor)

    async def list_user_repos(
        self,
        on_page: Callable[[int, Page], None] | None = None,
    ) -> list[RepositoryRecord]:
        """Follow cursors until the last page; any failure discards everything."""
        repos: list[RepositoryRecord] = []
        cursor: str | None = None
        page_no = 0
        while True:
            page = await self.fetch_page(cursor)
            page_no += 1
            repos.extend(page.records)
            logger.debug("page %d: %d records, has_next=%s", page_no, len(page.records), page.has_next)
            if on_page is not None:
                on_page(page_no, page)
            if not page.has_next:
                break
            cursor = page.cursor
        return repos
