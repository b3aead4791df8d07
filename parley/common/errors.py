"""Exception types shared across Parley."""


class ParleyError(Exception):
    """Base class for Parley errors"""


class SummarizationError(ParleyError):
    """The summarization oracle failed or returned an unusable reply"""


class EmailLoadError(ParleyError):
    """An email source could not be read or validated"""
