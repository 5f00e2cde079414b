# awsx/errors.py
from typing import Iterable, Optional


class AwsxError(Exception):
    """
    An operation failure that carries every underlying cause.

    The message describes the operation that failed (e.g., "Failed to sync
    files with S3 bucket 'my-bucket'"), `errors` holds the causes in the
    order they were collected.
    """

    def __init__(self, message: str, errors: Optional[Iterable[BaseException]] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        causes = "\n".join(f"  - {e}" for e in self.errors)
        return f"{self.message}\n{causes}"


class InvalidArgumentError(AwsxError, ValueError):
    """Raised before any side effect when a required argument is missing or out of range."""
    pass


def wrap_errors(message: str, *causes) -> AwsxError:
    """
    Builds an AwsxError from a mix of strings, exceptions and lists of exceptions.
    Nested AwsxErrors are flattened so the top-level error lists every cause.
    """
    errors = []
    for cause in causes:
        if cause is None:
            continue
        if isinstance(cause, str):
            errors.append(Exception(cause))
        elif isinstance(cause, AwsxError):
            errors.append(Exception(cause.message))
            errors.extend(cause.errors)
        elif isinstance(cause, BaseException):
            errors.append(cause)
        else:
            errors.extend(wrap_errors(message, *cause).errors)
    return AwsxError(message, errors)


def invalid_argument(message: str, reason: str) -> InvalidArgumentError:
    return InvalidArgumentError(message, [ValueError(reason)])
