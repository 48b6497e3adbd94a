"""Tests for deterministic stack names and model resolution."""

from __future__ import annotations

import pytest

from vectorkb.stack.models import resolve_embedding_model_arn, validate_embedding_dims
from vectorkb.stack.names import deterministic_names, stack_suffix


class TestStackSuffix:
    """Test suite for stack_suffix."""

    @pytest.mark.parametrize(
        "stack_id, expected",
        [
            ("arn:aws:cloudformation:us-east-1:1:stack/kb/abcd-1234-EF567890", "ef567890"),
            ("vectorkb", "vectorkb"),
            ("My_Stack", "mystack"),
            ("", "default"),
            ("__!!__", "default"),
        ],
    )
    def test_suffix(self, stack_id: str, expected: str) -> None:
        """Test suffix derivation."""
        assert stack_suffix(stack_id) == expected

    def test_names(self) -> None:
        """Test generated names share the suffix."""
        names = deterministic_names("vectorkb")

        assert names.knowledge_base_name == "kb-s3vectors-vectorkb"
        assert names.data_source_name == "ds-s3-vectorkb"
        assert names.vector_bucket_name == "s3vectors-vectorkb"
        assert names.vector_index_name == "index-vectorkb"

    def test_names_are_stable(self) -> None:
        """Test the same stack id always yields the same names."""
        assert deterministic_names("stack/abc/12345678") == deterministic_names("stack/abc/12345678")


class TestEmbeddingModels:
    """Test suite for embedding model helpers."""

    def test_default_model(self) -> None:
        """Test the default embedding model is Titan v2 in the region."""
        assert resolve_embedding_model_arn("eu-west-1") == (
            "arn:aws:bedrock:eu-west-1::foundation-model/amazon.titan-embed-text-v2:0"
        )
        assert resolve_embedding_model_arn("eu-west-1", "arn:custom") == "arn:custom"

    @pytest.mark.parametrize("dims", [256, 512, 1024])
    def test_titan_v2_dimensions(self, dims: int) -> None:
        """Test supported Titan v2 dimensions."""
        validate_embedding_dims("amazon.titan-embed-text-v2:0", dims)

    def test_titan_v1_rejects_1024(self) -> None:
        """Test Titan v1 requires 1536 dimensions."""
        with pytest.raises(ValueError, match="1536"):
            validate_embedding_dims("amazon.titan-embed-text-v1", 1024)

    def test_other_model_dimensions(self) -> None:
        """Test other models accept only the known dimensions."""
        validate_embedding_dims("cohere.embed-english-v3", 1536)
        with pytest.raises(ValueError, match="vector_dimension"):
            validate_embedding_dims("cohere.embed-english-v3", 768)
