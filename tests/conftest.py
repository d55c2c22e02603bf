"""Shared fixtures: an in-memory content-addressed ledger and fake HTTP plumbing."""

import sys
import hashlib
import datetime as dt
from pathlib import Path

# Ensure pixelart is importable without installing
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from pixelart.chain import ChainContext
from pixelart.errors import TransientRemoteError
from pixelart.identity import Identity
from pixelart import yeargrid


class FakeLedger:
    """Git-like object store: ids are hashes of content, so writes are idempotent."""

    def __init__(self, branch="main"):
        self.objects = {}
        self.refs = {}
        self.calls = []
        self.fail_at = None          # (method, nth call)
        self.fail_with = TransientRemoteError("boom", 502)
        tree = self._put("tree", ())
        self.refs[branch] = self._put("commit", (tree, (), "init", None, None))
        self.calls = []

    def _put(self, kind, payload):
        sha = hashlib.sha1(repr((kind, payload)).encode()).hexdigest()
        self.objects[sha] = (kind, payload)
        return sha

    def _call(self, name):
        self.calls.append(name)
        if self.fail_at and self.fail_at == (name, self.calls.count(name)):
            raise self.fail_with

    def create_blob(self, content, encoding="utf-8"):
        self._call("create_blob")
        return self._put("blob", content)

    def commit_tree(self, sha):
        self._call("commit_tree")
        return self.objects[sha][1][0]

    def create_tree(self, base_tree, entries):
        self._call("create_tree")
        files = dict(self.objects[base_tree][1]) if base_tree else {}
        for e in entries:
            files[e["path"]] = e["sha"]
        return self._put("tree", tuple(sorted(files.items())))

    def create_commit(self, message, tree, parents, author, committer=None):
        self._call("create_commit")
        freeze = lambda d: tuple(sorted(d.items())) if d else None
        return self._put("commit", (tree, tuple(parents), message, freeze(author), freeze(committer)))

    def get_ref(self, branch):
        self._call("get_ref")
        return self.refs[branch]

    def update_ref(self, branch, sha, force=False):
        self._call("update_ref")
        self.refs[branch] = sha

    # ---- inspection ----
    def commit(self, sha):
        tree, parents, message, author, committer = self.objects[sha][1]
        return {"tree": tree, "parents": list(parents), "message": message,
                "author": dict(author) if author else None}

    def files(self, sha):
        return dict(self.objects[self.commit(sha)["tree"]][1])

    def history(self, sha):
        out = []
        while True:
            out.append(sha)
            parents = self.commit(sha)["parents"]
            if not parents:
                return out
            sha = parents[0]


class FakeResponse:
    def __init__(self, status=200, payload=None, headers=None, text=None):
        self.status_code = status
        self._payload = payload
        self.headers = headers or {}
        self.text = text if text is not None else ("" if payload is None else repr(payload))
        self.content = self.text.encode()
        self.reason = ""

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self):
        import requests
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeSession:
    """Answers requests from a route table of (METHOD, url suffix) -> responses."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.sent = []

    def _answer(self, method, url, **kw):
        self.sent.append((method, url, kw))
        for (m, suffix), answers in self.routes.items():
            if m == method and url.endswith(suffix):
                answers = answers if isinstance(answers, list) else [answers]
                # the last answer sticks
                a = answers.pop(0) if len(answers) > 1 else answers[0]
                if isinstance(a, Exception):
                    raise a
                return a(method, url, kw) if callable(a) else a
        raise AssertionError(f"unexpected request {method} {url}")

    def request(self, method, url, **kw):
        return self._answer(method, url, **kw)

    def get(self, url, **kw):
        return self._answer("GET", url, **kw)

    def post(self, url, **kw):
        return self._answer("POST", url, **kw)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def identity():
    return Identity(login="octocat", name="The Octocat", uid=583231)


@pytest.fixture
def ctx(ledger, identity):
    return ChainContext(ledger, identity, branch="main")


@pytest.fixture
def dates_2024():
    return yeargrid.year_dates(2024)


@pytest.fixture
def grid_2024(dates_2024):
    return yeargrid.blank_grid(dates_2024, 2024)


def make_tasks(n, start=dt.date(2024, 3, 1)):
    """n tasks, up to 4 per day, on consecutive days."""
    from pixelart.scheduler import CommitTask
    out = []
    day = start
    while len(out) < n:
        level = min(4, n - len(out))
        out += [CommitTask(day, level, i) for i in range(level)]
        day += dt.timedelta(days=1)
    return out
