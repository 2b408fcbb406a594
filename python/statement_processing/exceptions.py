"""
Statement Processing Exceptions
"""


class ProcessingError(Exception):
    """Base class for statement processing errors."""


class StatementNotFound(ProcessingError):
    """No statement record exists for the given id."""


class StatementBusy(ProcessingError):
    """The statement is already being processed."""


class AccountNotFound(ProcessingError):
    """No card account could be correlated with the statement."""
