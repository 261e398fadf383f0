"""
Exception classes for Content Trust.

All library exceptions inherit from ContentTrustError. Most of the pipeline
degrades instead of raising (see the per-component notes); these are the
cases that do surface to callers.
"""


class ContentTrustError(Exception):
    """Base exception for all Content Trust errors."""

    pass


class ConfigurationError(ContentTrustError):
    """
    Raised when required configuration is missing or malformed.

    Never defaulted silently: a guessed prompt or category list would
    produce pedagogically wrong output.
    """

    pass


class CompletionError(ContentTrustError):
    """
    Raised when the completion model could not be reached after all retries.

    Only raised for callers that ask for it (single-shot structuring).
    Per-chunk extraction receives an empty response instead.
    """

    def __init__(self, message: str, call_point: str = "", attempts: int = 0):
        super().__init__(message)
        self.call_point = call_point
        self.attempts = attempts


class JSONRecoveryError(ContentTrustError):
    """
    Raised when model output cannot be parsed even after repair.

    Carries diagnostics so operators can see how far the repair got.
    """

    def __init__(
        self,
        message: str,
        raw_length: int = 0,
        repaired_length: int = 0,
        fixes_applied: tuple = (),
        tail: str = "",
        context: str = "",
    ):
        super().__init__(message)
        self.raw_length = raw_length
        self.repaired_length = repaired_length
        self.fixes_applied = list(fixes_applied)
        self.tail = tail
        self.context = context


class StructuringError(ContentTrustError):
    """Raised when a pyramid cannot be produced; a partial tree is not usable."""

    pass
