"""Build a linear chain of commits, one per task.

Everything written for a task (blob, tree, commit) is derived from the task
and its parent only, so writing the same task on the same parent twice
produces the same object ids. Retries and resumed runs never fork the chain.
"""

import logging
import threading
import datetime as dt
from dataclasses import dataclass, field

from .config import BRANCH
from .errors import Cancelled
from .identity import Identity

logger = logging.getLogger(__name__)

FILE_MODE = "100644"


@dataclass
class ChainContext:
    """Everything a synthesis run needs besides the tasks.

    `ledger` provides the write primitives: ``commit_tree(sha)``,
    ``create_blob(content)``, ``create_tree(base_tree, entries)``,
    ``create_commit(message, tree, parents, author, committer)``,
    ``get_ref(branch)`` and ``update_ref(branch, sha)``.
    """
    ledger: object
    identity: Identity
    branch: str = BRANCH
    cancel: threading.Event = field(default_factory=threading.Event)

    def check(self):
        if self.cancel.is_set():
            raise Cancelled()


def commit_date(task) -> dt.datetime:
    # noon UTC keeps the day stable in every viewer's timezone
    return dt.datetime(task.date.year, task.date.month, task.date.day, 12,
                       tzinfo=dt.timezone.utc)


def blob_content(task) -> str:
    return f"Contribution on {task.date.isoformat()} #{task.index}\n"


def blob_path(task) -> str:
    d = task.date
    return f"contributions/{d.year}/{d.month}/{d.day}-{task.index}.txt"


def commit_message(task) -> str:
    return f"Contribution for {task.date:%a %b %d %Y}"


def extend_chain(tasks, head_sha: str, ctx: ChainContext) -> str:
    """Append one commit per task on top of `head_sha`; return the new tip.

    The branch reference is not touched. A failure aborts at once and the
    objects already written stay unreferenced.
    """
    sha = head_sha
    if not tasks:
        return sha
    ledger = ctx.ledger
    ctx.check()
    tree = ledger.commit_tree(sha)

    for task in tasks:
        ctx.check()
        blob = ledger.create_blob(blob_content(task))
        ctx.check()
        tree = ledger.create_tree(tree, [{
            "path": blob_path(task),
            "mode": FILE_MODE,
            "type": "blob",
            "sha": blob,
        }])
        ctx.check()
        who = ctx.identity.author(commit_date(task))
        sha = ledger.create_commit(commit_message(task), tree, [sha], who, who)
        logger.debug("commit %s for %s #%d", sha[:7], task.date, task.index)
    return sha
