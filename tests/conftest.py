"""Shared test fixtures and fakes."""

import asyncio
import json

import httpx
import pytest

from ghclone.core.github_client import GitHubClient
from ghclone.core.types import Outcome, RepositoryRecord


def node(name, archived=False, fork=False):
    return {
        "name": name,
        "sshUrl": f"git@github.com:me/{name}.git",
        "url": f"https://github.com/me/{name}",
        "isArchived": archived,
        "isFork": fork,
    }


def page_body(nodes, has_next=False, cursor=None):
    return {
        "data": {
            "viewer": {
                "repositories": {
                    "nodes": nodes,
                    "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
                }
            }
        }
    }


def record(name, **kw):
    return RepositoryRecord.model_validate(node(name, **kw))


async def settle(rounds=10):
    """Give scheduled tasks and done-callbacks a chance to run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class GraphQLServer:
    """Serves canned GraphQL bodies in order and records request variables."""

    def __init__(self, bodies):
        self.bodies = list(bodies)
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.bodies[len(self.requests) - 1]
        if isinstance(body, httpx.Response):
            return body
        return httpx.Response(200, json=body)

    @property
    def variables(self):
        return [json.loads(r.content)["variables"] for r in self.requests]

    def client(self, token="tok"):
        return GitHubClient(token, url="https://api.test/graphql", transport=httpx.MockTransport(self.handler))


class FakeGit:
    """Stands in for GitClient: clones finish only when the test says so."""

    def __init__(self, existing=(), auto=None):
        self.existing = set(existing)
        self.auto = auto  # name -> Outcome, finish immediately
        self.started = []
        self.cancelled = []
        self.checked = []
        self._futures = {}

    def has_checkout(self, path):
        self.checked.append(path)
        return any(path.endswith(name) for name in self.existing)

    async def clone(self, rec, target_dir):
        self.started.append(rec.name)
        if self.auto is not None:
            await asyncio.sleep(0)
            return self.auto.get(rec.name, Outcome.cloned())
        fut = asyncio.get_running_loop().create_future()
        self._futures[rec.name] = fut
        try:
            return await fut
        except asyncio.CancelledError:
            self.cancelled.append(rec.name)
            raise

    def finish(self, name, outcome=None):
        self._futures[name].set_result(outcome or Outcome.cloned())


@pytest.fixture
def events():
    return []
