"""Exception hierarchy for Dissent.

Only two conditions are raised to callers; everything else in the pipeline
degrades to "no new conflicts this run" and is logged instead.
"""


class DissentError(Exception):
    """Base class for all Dissent errors."""


class JudgeError(DissentError):
    """No judge provider is enabled, or every enabled provider failed."""


class LedgerError(DissentError):
    """The conflict store could not be written."""
