"""Helpers for classifying botocore client errors by error code."""

from __future__ import annotations

from typing import Iterable

from botocore.exceptions import ClientError

NOT_FOUND_CODES = frozenset(
    {
        "ResourceNotFoundException",
        "NotFoundException",
        "NotFound",
        "NoSuchBucket",
        "NoSuchIndex",
    }
)

THROTTLING_CODES = frozenset(
    {
        "ThrottlingException",
        "TooManyRequestsException",
        "Throttling",
    }
)

ALREADY_EXISTS_CODES = frozenset(
    {
        "ConflictException",
        "ResourceAlreadyExistsException",
    }
)


def error_code(error: BaseException) -> str:
    """Return the AWS error code of a ClientError, or "Unknown"."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "Unknown")
    return "Unknown"


def error_message(error: BaseException) -> str:
    """Return the AWS error message of a ClientError, or str(error)."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Message", str(error))
    return str(error)


def matches_error(error: BaseException, codes: Iterable[str]) -> bool:
    """Check whether a ClientError carries one of the given error codes."""
    if not isinstance(error, ClientError):
        return False
    return error_code(error) in set(codes)


def is_not_found(error: BaseException) -> bool:
    """Check whether an error means the remote resource does not exist.

    Known not-found codes match directly. Codes that only spell "not found"
    differently (e.g. "KnowledgeBaseNotFound") are matched by name.
    """
    if not isinstance(error, ClientError):
        return False
    code = error_code(error)
    if code in NOT_FOUND_CODES:
        return True
    normalized = code.lower()
    return "notfound" in normalized or "not found" in error_message(error).lower()


def is_throttling(error: BaseException) -> bool:
    """Check whether an error is a throttling response."""
    return matches_error(error, THROTTLING_CODES)
