"""Tests for the knowledge base stack blueprint."""

from __future__ import annotations

import pytest

from tests.fixtures.lifecycle import ROLE_ARN, make_settings
from vectorkb.models.resource import ResourceKind
from vectorkb.stack.blueprint import DATA_SOURCE, KNOWLEDGE_BASE, VECTOR_BUCKET, VECTOR_INDEX, build_graph


class TestBuildGraph:
    """Test suite for build_graph."""

    def test_creation_order(self) -> None:
        """Test the stack is ordered bucket, index, knowledge base, data source."""
        graph = build_graph(make_settings())

        assert [n.name for n in graph.creation_order()] == [VECTOR_BUCKET, VECTOR_INDEX, KNOWLEDGE_BASE, DATA_SOURCE]
        assert [n.name for n in graph.deletion_order()] == [DATA_SOURCE, KNOWLEDGE_BASE, VECTOR_INDEX, VECTOR_BUCKET]

    def test_specs_reference_each_other(self) -> None:
        """Test ARNs flow from bucket to index to knowledge base."""
        graph = build_graph(make_settings())
        bucket = graph.node(VECTOR_BUCKET)
        index = graph.node(VECTOR_INDEX)
        knowledge_base = graph.node(KNOWLEDGE_BASE)
        data_source = graph.node(DATA_SOURCE)

        assert bucket.spec.arn == "arn:aws:s3vectors:us-east-1:123456789012:bucket/s3vectors-5678ab9z"
        assert index.spec.bucket_arn == bucket.spec.arn
        assert knowledge_base.spec.vector_bucket_arn == bucket.spec.arn
        assert knowledge_base.spec.index_arn == index.spec.arn
        assert knowledge_base.spec.role_arn == ROLE_ARN
        assert data_source.parent is knowledge_base
        assert data_source.kind == ResourceKind.DATA_SOURCE

    def test_client_token_is_deterministic(self) -> None:
        """Test the knowledge base client token derives from name, account and region."""
        graph = build_graph(make_settings())

        assert graph.node(KNOWLEDGE_BASE).spec.client_token == "kb-kb-s3vectors-5678ab9z-123456789012-us-east-1"

    def test_name_overrides(self) -> None:
        """Test explicit names replace generated ones."""
        graph = build_graph(make_settings(knowledge_base_name="my-kb", vector_index_name="my-index"))

        assert graph.node(KNOWLEDGE_BASE).spec.name == "my-kb"
        assert graph.node(VECTOR_INDEX).spec.index_name == "my-index"
        assert graph.node(DATA_SOURCE).spec.name == "ds-s3-5678ab9z"

    def test_foundation_parsing(self) -> None:
        """Test foundation model parsing uses the default parsing model."""
        graph = build_graph(make_settings(use_foundation_parsing=True, parsing_prompt_text="Keep tables"))

        spec = graph.node(DATA_SOURCE).spec
        assert spec.parsing_model_arn == (
            "arn:aws:bedrock:us-east-1::foundation-model/anthropic.claude-3-sonnet-20240229-v1:0"
        )
        assert spec.parsing_prompt_text == "Keep tables"

    def test_parsing_prompt_ignored_without_parsing(self) -> None:
        """Test the parsing prompt is dropped when parsing is off."""
        graph = build_graph(make_settings(parsing_prompt_text="Keep tables"))

        assert graph.node(DATA_SOURCE).spec.parsing_model_arn is None
        assert graph.node(DATA_SOURCE).spec.parsing_prompt_text is None

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"role_arn": ""}, "role_arn"),
            ({"ingestion_bucket_arn": ""}, "ingestion_bucket_arn"),
            ({"distance_metric": "dot"}, "distance_metric"),
            ({"embedding_data_type": "INT8"}, "embedding_data_type"),
            ({"vector_dimension": 1536}, "Titan Embed Text v2"),
        ],
    )
    def test_invalid_settings(self, overrides: dict, message: str) -> None:
        """Test invalid settings are rejected before a graph is built."""
        with pytest.raises(ValueError, match=message):
            build_graph(make_settings(**overrides))

    def test_titan_v1_dimensions(self) -> None:
        """Test a Titan v1 model accepts 1536 dimensions."""
        model = "arn:aws:bedrock:us-east-1::foundation-model/amazon.titan-embed-text-v1"

        graph = build_graph(make_settings(embedding_model_arn=model, vector_dimension=1536))

        assert graph.node(VECTOR_INDEX).spec.dimension == 1536
