"""
Errors raised by a sweep.

ConfigurationError is fatal for the whole invocation. ReadError is fatal when
the id list cannot be read and isolated to one record otherwise.
SubmissionError never leaves the per-record loop.
"""


class SweepError(RuntimeError):
    """Base class for everything a sweep raises on purpose."""


class ConfigurationError(SweepError):
    """Static configuration is unusable (unknown chain, no evms, bad cron...)."""


class ReadError(SweepError):
    """A read-only ledger call failed or returned data that does not decode."""


class SubmissionError(SweepError):
    """Signing a report or writing it to the ledger failed."""
