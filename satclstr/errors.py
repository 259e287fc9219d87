"""
Error and warning types raised by satclstr.

Hard failures derive from ``SatclstrError``. Soft failures derive from
``SatclstrWarning`` and are emitted with ``warnings.warn`` while the
computation continues with a defined fallback result.
"""


class SatclstrError(Exception):
    """Base class for satclstr errors."""


class IncompatibleSeriesError(SatclstrError, ValueError):
    """Samples have mismatched band sets or unequal series lengths."""


class InvalidCutError(SatclstrError, ValueError):
    """Requested cluster count lies outside [1, N]."""


class SatclstrWarning(UserWarning):
    """Base class for satclstr warnings."""


class DegenerateValidityError(SatclstrWarning):
    """A validity index had a zero denominator and was replaced by 0."""


class EmptyClusterPolicyError(SatclstrWarning):
    """A curation threshold removed every sample."""
