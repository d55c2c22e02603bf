"""GitHub REST ledger: git data primitives, repository provisioning, user lookup."""

import time
import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import config
from .errors import (AuthError, NotFound, PermanentRemoteError, RateLimited,
                     TransientRemoteError)
from .identity import Identity

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


class RateLimitRetry(Retry):
    """Also retries 403s that carry ``Retry-After``.

    GitHub answers secondary rate limits with 403 plus ``Retry-After``; a
    403 without the header is a permission error and is returned as is.
    """

    RETRY_AFTER_STATUS_CODES = frozenset({403, 413, 429, 503})


def api_headers(token: str):
    return {"Accept":"application/vnd.github+json","Authorization":f"token {token}",
            "X-GitHub-Api-Version":"2022-11-28","User-Agent":config.USER_AGENT}


def make_session(retries=None, backoff=None) -> requests.Session:
    """Session that retries network errors, 429/5xx and throttled 403s on every verb.

    Retrying POSTs is safe here: blobs, trees and commits are
    content-addressed and built deterministically, so a repeated write
    returns the object that already exists.
    """
    retry = RateLimitRetry(
        total=config.RETRIES if retries is None else retries,
        backoff_factor=config.BACKOFF if backoff is None else backoff,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=None,
        respect_retry_after_header=True,
        raise_on_status=False,
    )
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s


def _message(resp) -> str:
    try:
        j = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason or ""
    if not isinstance(j, dict):
        return ""
    details = [e.get("message", "") for e in j.get("errors", []) if isinstance(e, dict)]
    return "; ".join(m for m in [j.get("message", "")] + details if m)


def raise_for(resp, what: str):
    """Map an HTTP error response to the error taxonomy."""
    code = resp.status_code
    if code < 400:
        return
    msg = f"{what}: HTTP {code} {_message(resp)}".rstrip()
    if code == 401:
        raise AuthError(msg, code)
    if code == 429 or (code == 403 and (resp.headers.get("X-RateLimit-Remaining") == "0"
                                        or "rate limit" in msg.lower())):
        raise RateLimited(msg, code, resp.headers.get("X-RateLimit-Reset"))
    if code == 403:
        raise AuthError(msg, code)
    if code == 404:
        raise NotFound(msg, code)
    if code >= 500:
        raise TransientRemoteError(msg, code)
    raise PermanentRemoteError(msg, code)


def reset_wait(reset, now=None):
    """Seconds until an ``X-RateLimit-Reset`` epoch, or None when unknown."""
    try:
        left = float(reset) - (time.time() if now is None else now)
    except (TypeError, ValueError):
        return None
    return max(0.0, left) + 1


def _send(session, method, url, token, what, timeout, **kw):
    try:
        return session.request(method, url, headers=api_headers(token),
                               timeout=config.TIMEOUT if timeout is None else timeout, **kw)
    except requests.Timeout as e:
        raise TransientRemoteError(f"{what}: timed out") from e
    except requests.RequestException as e:
        raise TransientRemoteError(f"{what}: {e}") from e


def request(session, method, url, token, what, timeout=None, **kw):
    """One API call: typed errors, JSON body (``{}`` when empty).

    An exhausted quota whose reset is at most ``RATE_LIMIT_WAIT`` away is
    waited out, up to ``RETRIES`` times.
    """
    for attempt in range(config.RETRIES + 1):
        r = _send(session, method, url, token, what, timeout, **kw)
        try:
            raise_for(r, what)
            break
        except RateLimited as e:
            wait = reset_wait(e.reset)
            if attempt == config.RETRIES or wait is None or wait > config.RATE_LIMIT_WAIT:
                raise
            logger.warning("%s: rate limited, waiting %.0fs for the quota to reset", what, wait)
            time.sleep(wait)
    if not r.content:
        return {}
    try:
        return r.json()
    except ValueError as e:
        raise PermanentRemoteError(f"{what}: malformed response (not JSON)", r.status_code) from e


def field(j, what, *keys):
    """``j[k1][k2]…`` of a response body; a missing key is a malformed response."""
    try:
        for k in keys:
            j = j[k]
    except (KeyError, TypeError, IndexError) as e:
        raise PermanentRemoteError(f"{what}: malformed response (no {'.'.join(keys)})") from e
    return j


def get_user(token: str, session=None) -> Identity:
    s = session or make_session()
    j = request(s, "GET", f"{config.API_URL}/user", token, "get user")
    return Identity.from_user(j)


def repo_url(owner: str, repo: str) -> str:
    return f"{config.WEB_URL}/{owner}/{repo}"


class GitHubLedger:
    """Git data API of one repository."""

    def __init__(self, token, owner, repo, session=None, timeout=None):
        self.token = token
        self.owner = owner
        self.repo = repo
        self.session = session or make_session()
        self.timeout = timeout

    @property
    def base(self):
        return f"{config.API_URL}/repos/{self.owner}/{self.repo}"

    def _call(self, method, path, what, **kw):
        return request(self.session, method, f"{self.base}{path}", self.token, what,
                       timeout=self.timeout, **kw)

    # ---- git data ----
    def create_blob(self, content: str, encoding: str = "utf-8") -> str:
        j = self._call("POST", "/git/blobs", "create blob",
                       json={"content": content, "encoding": encoding})
        return field(j, "create blob", "sha")

    def commit_tree(self, sha: str) -> str:
        j = self._call("GET", f"/git/commits/{sha}", "get commit")
        return field(j, "get commit", "tree", "sha")

    def create_tree(self, base_tree: str, entries) -> str:
        payload = {"tree": list(entries)}
        if base_tree:
            payload["base_tree"] = base_tree
        j = self._call("POST", "/git/trees", "create tree", json=payload)
        return field(j, "create tree", "sha")

    def create_commit(self, message, tree, parents, author, committer=None) -> str:
        payload = {"message": message, "tree": tree, "parents": list(parents), "author": author}
        if committer:
            payload["committer"] = committer
        j = self._call("POST", "/git/commits", "create commit", json=payload)
        return field(j, "create commit", "sha")

    def get_ref(self, branch: str) -> str:
        try:
            j = self._call("GET", f"/git/ref/heads/{branch}", f"get ref {branch}")
        except PermanentRemoteError as e:
            # 409: repository exists but is still empty
            if e.status == 409:
                raise NotFound(str(e), e.status) from e
            raise
        return field(j, f"get ref {branch}", "object", "sha")

    def update_ref(self, branch: str, sha: str, force: bool = False):
        self._call("PATCH", f"/git/refs/heads/{branch}", f"update ref {branch}",
                   json={"sha": sha, "force": force})

    # ---- repository ----
    def get_repo(self) -> dict:
        return self._call("GET", "", "get repo")

    def create_repo(self, private=True, description="", org=None) -> dict:
        url = f"{config.API_URL}/orgs/{org}/repos" if org else f"{config.API_URL}/user/repos"
        payload = {"name": self.repo, "description": description,
                   "private": private, "auto_init": True}
        return request(self.session, "POST", url, self.token, "create repo",
                       timeout=self.timeout, json=payload)


def ensure_repo(ledger: GitHubLedger, branch=None, private=True, org=None,
                wait=None, polls=None) -> str:
    """Get or create the target repository and return the head sha of `branch`.

    A freshly created repository is initialised asynchronously, so the branch
    is polled until it resolves.
    """
    branch = branch or config.BRANCH
    wait = config.INIT_WAIT if wait is None else wait
    polls = config.INIT_POLLS if polls is None else polls
    try:
        ledger.get_repo()
    except NotFound:
        try:
            data = ledger.create_repo(private=private, org=org)
            logger.info("Created %s repo %s", "private" if private else "public",
                        data.get("full_name", ledger.repo))
        except PermanentRemoteError as e:
            if e.status != 422 or "exist" not in str(e).lower():
                raise
            logger.info("Repo %s/%s already exists", ledger.owner, ledger.repo)

    last = None
    for attempt in range(polls + 1):
        try:
            return ledger.get_ref(branch)
        except NotFound as e:
            last = e
        if attempt < polls:
            logger.info("Waiting for %s/%s to initialise… (%d/%d)",
                        ledger.owner, ledger.repo, attempt + 1, polls)
            time.sleep(wait)
    raise NotFound(f"branch {branch!r} of {ledger.owner}/{ledger.repo} never became ready: {last}",
                   getattr(last, "status", None))

