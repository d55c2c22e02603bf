"""Paint a pattern onto a year's contribution graph by synthesizing commits."""

from .scheduler import CommitTask, schedule
from .chain import ChainContext, extend_chain
from .batch import partition, synthesize
from .identity import Identity

__version__ = "1.0.0"
