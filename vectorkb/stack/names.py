"""Deterministic resource names derived from the stack id."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_INVALID_CHARS = re.compile(r"[^a-z0-9-]")


@dataclass(frozen=True)
class NameSet:
    """All names used by a stack."""

    knowledge_base_name: str
    data_source_name: str
    vector_bucket_name: str
    vector_index_name: str


def stack_suffix(stack_id: str) -> str:
    """Short collision-resistant suffix from the last path segment of a stack id.

    Lowercase alphanumerics and hyphens only, at most 8 characters, "default"
    when nothing usable remains.
    """
    raw = stack_id.split("/")[-1][-8:] if stack_id else ""
    return _INVALID_CHARS.sub("", raw.lower())[:8] or "default"


def deterministic_names(
    stack_id: str,
    knowledge_base_name: Optional[str] = None,
    data_source_name: Optional[str] = None,
    vector_bucket_name: Optional[str] = None,
    vector_index_name: Optional[str] = None,
) -> NameSet:
    """Build the stack's names; explicit overrides win over generated ones."""
    suffix = stack_suffix(stack_id)
    return NameSet(
        knowledge_base_name=knowledge_base_name or f"kb-s3vectors-{suffix}",
        data_source_name=data_source_name or f"ds-s3-{suffix}",
        vector_bucket_name=vector_bucket_name or f"s3vectors-{suffix}",
        vector_index_name=vector_index_name or f"index-{suffix}",
    )
