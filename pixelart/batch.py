"""Drive the chain builder batch by batch, checkpointing the branch after each."""

import time
import logging

from . import config
from .chain import extend_chain
from .errors import BatchFailed, NothingToSynthesize, PixelArtError

logger = logging.getLogger(__name__)


def partition(tasks, size: int):
    if size <= 0:
        raise ValueError(f"batch size must be > 0, got {size}")
    return [tasks[i:i+size] for i in range(0, len(tasks), size)]


def synthesize(tasks, head_sha: str, ctx, batch_size=None, delay=None, on_progress=None) -> str:
    """Write `tasks` as a linear chain on top of `head_sha`; return the final tip.

    Batches run strictly in sequence: each one starts from the sha the
    previous one checkpointed. After every batch the branch reference is
    moved to the new tip, so a failure loses at most the batch in flight and
    surfaces as :class:`BatchFailed` with the resume point.
    """
    if not tasks:
        raise NothingToSynthesize()
    ctx.identity.require()

    size = config.BATCH_SIZE if batch_size is None else batch_size
    pause = config.BATCH_DELAY if delay is None else delay
    batches = partition(list(tasks), size)
    checkpoint = head_sha
    done = 0

    for idx, batch in enumerate(batches, start=1):
        try:
            sha = extend_chain(batch, checkpoint, ctx)
            ctx.check()
            ctx.ledger.update_ref(ctx.branch, sha)
        except PixelArtError as e:
            err = BatchFailed(idx, len(batches), checkpoint, done, e)
            logger.error("%s", err)
            raise err from e
        checkpoint = sha
        done += len(batch)
        logger.info("Batch %d/%d: %s -> %s (%d/%d commits)",
                    idx, len(batches), ctx.branch, sha[:7], done, len(tasks))
        if on_progress:
            on_progress(done, len(tasks))
        if idx < len(batches) and pause > 0:
            logger.info("Checkpoint %d done. Cooling down %ss…", idx, pause)
            time.sleep(pause)

    return checkpoint
