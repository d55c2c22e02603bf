"""Error taxonomy.

Input errors fail before any remote call. Remote errors come from a ledger
(GitHub API or local git) and say whether retrying could help. A failed
synthesis run is reported once, as BatchFailed, carrying the checkpoint
needed to resume.
"""


class PixelArtError(Exception):
    pass


# ---- input ----
class InputError(PixelArtError):
    pass


class NothingToSynthesize(InputError):
    def __init__(self, msg="Nothing to synthesize: the grid has no painted cells for this year."):
        super().__init__(msg)


class MissingIdentity(InputError):
    def __init__(self, msg="Git identity is not set (login is required)."):
        super().__init__(msg)


# ---- remote ----
class RemoteError(PixelArtError):
    transient = False

    def __init__(self, msg, status=None):
        super().__init__(msg)
        self.status = status


class AuthError(RemoteError):
    pass


class NotFound(RemoteError):
    pass


class PermanentRemoteError(RemoteError):
    pass


class TransientRemoteError(RemoteError):
    transient = True


class RateLimited(TransientRemoteError):
    def __init__(self, msg, status=None, reset=None):
        super().__init__(msg, status)
        self.reset = reset


class Cancelled(PixelArtError):
    def __init__(self, msg="Cancelled by user."):
        super().__init__(msg)


# ---- run ----
class BatchFailed(PixelArtError):
    """A batch aborted. The branch still points at `checkpoint`.

    Re-run with ``tasks[resume_from:]`` and ``checkpoint`` as the head to
    continue where the last successful batch left off.
    """

    def __init__(self, batch_index, total_batches, checkpoint, resume_from, cause):
        self.batch_index = batch_index
        self.total_batches = total_batches
        self.checkpoint = checkpoint
        self.resume_from = resume_from
        self.cause = cause
        super().__init__(
            f"Batch {batch_index}/{total_batches} failed: {cause} "
            f"(branch left at {checkpoint[:7]}, resume from task {resume_from})")
