"""Local ledger: the same primitives over a git repository via GitPython.

Objects are written with plumbing commands, never through the working
tree, and every checkpoint can be pushed to a remote as it lands.
"""

import os
import time
import logging
import datetime as dt
import tempfile
from urllib.parse import quote

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from . import config
from .errors import NotFound, PermanentRemoteError, TransientRemoteError
from .identity import Identity

logger = logging.getLogger(__name__)


def auth_url(url: str, token: str) -> str:
    if url and url.startswith("https://") and token:
        return url.replace("https://", f"https://x-access-token:{quote(token, safe='')}@")
    return url


def open_repo(path, remote_url=None, token=None, remote="origin") -> Repo:
    """Open the repo at `path`, creating it if needed, and point `remote` at `remote_url`."""
    try:
        repo = Repo(path)
    except (InvalidGitRepositoryError, NoSuchPathError):
        os.makedirs(path, exist_ok=True)
        repo = Repo.init(path)
        logger.info("Local repo created at %s", path)
    if remote_url:
        url = auth_url(remote_url, token)
        if remote not in [r.name for r in repo.remotes]:
            repo.create_remote(remote, url)
        else:
            repo.remote(remote).set_url(url)
        # no interactive credential prompts mid-run
        with repo.config_writer() as cw:
            cw.set_value("credential", "helper", "")
    return repo


def local_identity(repo: Repo) -> Identity:
    reader = repo.config_reader()
    name = reader.get_value("user", "name", "")
    email = reader.get_value("user", "email", "")
    return Identity(login=str(name), name=str(name) or None, email=str(email) or None)


def _git_env(who: dict, role: str):
    return {f"GIT_{role}_NAME": who["name"],
            f"GIT_{role}_EMAIL": who["email"],
            f"GIT_{role}_DATE": who["date"]}


class LocalLedger:
    def __init__(self, repo: Repo, remote=None):
        self.repo = repo
        self.remote = remote
        self.pushes = 0

    def _git(self, cmd, *args, **kw):
        try:
            return getattr(self.repo.git, cmd)(*args, **kw)
        except GitCommandError as e:
            raise PermanentRemoteError(f"git {cmd.replace('_', '-')}: {e.stderr.strip() or e}",
                                       e.status) from e

    def create_blob(self, content: str, encoding: str = "utf-8") -> str:
        with tempfile.TemporaryFile() as f:
            f.write(content.encode(encoding))
            f.seek(0)
            return self._git("hash_object", "-w", "--stdin", istream=f)

    def commit_tree(self, sha: str) -> str:
        return self._git("rev_parse", f"{sha}^{{tree}}")

    def create_tree(self, base_tree, entries) -> str:
        # scratch index, so the real index and working tree stay untouched
        fd, index = tempfile.mkstemp(prefix="pixelart-index-")
        os.close(fd)
        os.unlink(index)
        env = {"GIT_INDEX_FILE": index}
        try:
            if base_tree:
                self._git("read_tree", base_tree, env=env)
            for e in entries:
                self._git("update_index", "--add", "--cacheinfo",
                          f"{e['mode']},{e['sha']},{e['path']}", env=env)
            return self._git("write_tree", env=env)
        finally:
            if os.path.exists(index):
                os.unlink(index)

    def create_commit(self, message, tree, parents, author, committer=None) -> str:
        env = _git_env(author, "AUTHOR")
        env.update(_git_env(committer or author, "COMMITTER"))
        args = [tree]
        for p in parents:
            args += ["-p", p]
        args += ["-m", message]
        return self._git("commit_tree", *args, env=env)

    def get_ref(self, branch: str) -> str:
        try:
            return self.repo.git.rev_parse("--verify", "--quiet", f"refs/heads/{branch}")
        except GitCommandError as e:
            raise NotFound(f"branch {branch!r} does not exist", e.status) from e

    def push(self, spec: str):
        """Push `spec`, retrying with backoff; each attempt is killed after ``PUSH_TIMEOUT``."""
        for attempt in range(config.RETRIES + 1):
            try:
                self.repo.git.push(self.remote, spec, kill_after_timeout=config.PUSH_TIMEOUT)
            except GitCommandError as e:
                msg = f"git push {self.remote}: {e.stderr.strip() or e}"
                if attempt == config.RETRIES:
                    raise TransientRemoteError(msg, e.status) from e
                wait = config.BACKOFF * 2 ** attempt
                logger.warning("%s, retrying in %.0fs (%d/%d)", msg, wait, attempt + 1, config.RETRIES)
                time.sleep(wait)
            else:
                self.pushes += 1
                return

    def update_ref(self, branch: str, sha: str, force: bool = False):
        # remote first: the local ref only moves once the checkpoint is published
        if self.remote:
            self.push(f"{'+' if force else ''}{sha}:refs/heads/{branch}")
        self._git("update_ref", f"refs/heads/{branch}", sha)


def ensure_local_branch(ledger: LocalLedger, branch: str, identity: Identity) -> str:
    """Head of `branch`, creating an ``init`` root commit when it does not exist."""
    try:
        return ledger.get_ref(branch)
    except NotFound:
        pass
    blob = ledger.create_blob("init\n")
    tree = ledger.create_tree(None, [{"path": "pixels.txt", "mode": "100644",
                                      "type": "blob", "sha": blob}])
    who = identity.author(dt.datetime.now(dt.timezone.utc).replace(microsecond=0))
    sha = ledger.create_commit("init", tree, [], who, who)
    ledger._git("update_ref", f"refs/heads/{branch}", sha)
    if not ledger.repo.head.is_valid():
        ledger._git("symbolic_ref", "HEAD", f"refs/heads/{branch}")
    logger.info("Initialised branch %s at %s", branch, sha[:7])
    return sha
