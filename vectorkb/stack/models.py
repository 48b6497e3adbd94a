"""Embedding and parsing model resolution."""

from __future__ import annotations

from typing import Optional

TITAN_V2_DIMENSIONS = (256, 512, 1024)
TITAN_V1_DIMENSIONS = (1536,)
SUPPORTED_DIMENSIONS = (256, 512, 1024, 1536)


def resolve_embedding_model_arn(region: str, override: Optional[str] = None) -> str:
    """Embedding model ARN, defaulting to Titan Embed Text v2 in the region."""
    if override:
        return override
    return f"arn:aws:bedrock:{region}::foundation-model/amazon.titan-embed-text-v2:0"


def resolve_parsing_model_arn(region: str, override: Optional[str] = None) -> str:
    """Parsing model ARN, defaulting to Claude 3 Sonnet in the region."""
    if override:
        return override
    return f"arn:aws:bedrock:{region}::foundation-model/anthropic.claude-3-sonnet-20240229-v1:0"


def validate_embedding_dims(model_arn: str, dims: int) -> None:
    """Check that the vector dimension is supported by the embedding model.

    Raises:
        ValueError: If the model and dimension are incompatible
    """
    if "titan-embed-text-v2" in model_arn:
        if dims not in TITAN_V2_DIMENSIONS:
            raise ValueError(
                f"Titan Embed Text v2 model supports 256, 512, or 1024 dimensions, but got {dims}. "
                f"Please set vector_dimension to one of the supported values."
            )
        return

    if "titan-embed-text-v1" in model_arn:
        if dims not in TITAN_V1_DIMENSIONS:
            raise ValueError(
                f"Titan Embed Text v1 model requires 1536 dimensions, but got {dims}. "
                f"Please set vector_dimension to 1536 or use a different embedding model."
            )
        return

    if dims not in SUPPORTED_DIMENSIONS:
        raise ValueError(
            f"vector_dimension must be one of {', '.join(str(d) for d in SUPPORTED_DIMENSIONS)}, but got {dims}. "
            f"Ensure your embedding model and vector dimensions are compatible."
        )
