"""Knowledge base stack blueprint.

Builds the dependency graph for one stack:

    vector bucket → vector index → knowledge base → data source
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..lifecycle.graph import DependencyGraph
from ..models.resource import (
    DataSourceSpec,
    KnowledgeBaseSpec,
    ResourceKind,
    ResourceNode,
    VectorBucketSpec,
    VectorIndexSpec,
)
from .models import resolve_embedding_model_arn, resolve_parsing_model_arn, validate_embedding_dims
from .names import NameSet, deterministic_names

logger = logging.getLogger(__name__)

DISTANCE_METRICS = ("cosine", "euclidean")
EMBEDDING_DATA_TYPES = ("FLOAT32", "BINARY")

# Node names within the graph
VECTOR_BUCKET = "vector-bucket"
VECTOR_INDEX = "vector-index"
KNOWLEDGE_BASE = "knowledge-base"
DATA_SOURCE = "data-source"


@dataclass
class StackSettings:
    """Inputs for one knowledge base stack.

    Attributes:
        stack_id: Stack identifier, source of the deterministic name suffix
        region: AWS region
        account: AWS account ID
        role_arn: Service role assumed by the knowledge base
        ingestion_bucket_arn: S3 bucket holding the documents to ingest
        inclusion_prefixes: Prefixes within the ingestion bucket to include
        vector_dimension: Embedding dimension (must suit the embedding model)
        embedding_model_arn: Embedding model (default: Titan Embed Text v2)
        embedding_data_type: FLOAT32 or BINARY
        distance_metric: cosine or euclidean
        data_type: Vector element type for the index
        use_foundation_parsing: Parse documents with a foundation model
        parsing_model_arn: Parsing model (default: Claude 3 Sonnet)
        parsing_prompt_text: Custom parsing prompt (optional)
    """

    stack_id: str
    region: str
    account: str
    role_arn: str
    ingestion_bucket_arn: str
    inclusion_prefixes: tuple[str, ...] = ("docs/",)
    vector_dimension: int = 1024
    embedding_model_arn: Optional[str] = None
    embedding_data_type: str = "FLOAT32"
    distance_metric: str = "cosine"
    data_type: str = "float32"
    use_foundation_parsing: bool = False
    parsing_model_arn: Optional[str] = None
    parsing_prompt_text: Optional[str] = None
    knowledge_base_name: Optional[str] = None
    data_source_name: Optional[str] = None
    vector_bucket_name: Optional[str] = None
    vector_index_name: Optional[str] = None

    def names(self) -> NameSet:
        return deterministic_names(
            self.stack_id,
            knowledge_base_name=self.knowledge_base_name,
            data_source_name=self.data_source_name,
            vector_bucket_name=self.vector_bucket_name,
            vector_index_name=self.vector_index_name,
        )


def build_graph(settings: StackSettings) -> DependencyGraph:
    """Build the stack's dependency graph.

    Raises:
        ValueError: If the settings are invalid (dimensions, metric, missing ARNs)
    """
    if not settings.role_arn:
        raise ValueError("role_arn is required")
    if not settings.ingestion_bucket_arn:
        raise ValueError("ingestion_bucket_arn is required")
    if settings.distance_metric not in DISTANCE_METRICS:
        raise ValueError(f"distance_metric must be one of {', '.join(DISTANCE_METRICS)}")
    if settings.embedding_data_type not in EMBEDDING_DATA_TYPES:
        raise ValueError(f"embedding_data_type must be one of {', '.join(EMBEDDING_DATA_TYPES)}")

    embedding_model_arn = resolve_embedding_model_arn(settings.region, settings.embedding_model_arn)
    validate_embedding_dims(embedding_model_arn, settings.vector_dimension)
    names = settings.names()

    bucket_spec = VectorBucketSpec(
        bucket_name=names.vector_bucket_name,
        region=settings.region,
        account=settings.account,
    )
    index_spec = VectorIndexSpec(
        bucket_arn=bucket_spec.arn,
        index_name=names.vector_index_name,
        dimension=settings.vector_dimension,
        distance_metric=settings.distance_metric,
        data_type=settings.data_type,
    )
    knowledge_base_spec = KnowledgeBaseSpec(
        name=names.knowledge_base_name,
        role_arn=settings.role_arn,
        embedding_model_arn=embedding_model_arn,
        dimension=settings.vector_dimension,
        vector_bucket_arn=bucket_spec.arn,
        index_arn=index_spec.arn,
        embedding_data_type=settings.embedding_data_type,
        client_token=f"kb-{names.knowledge_base_name}-{settings.account}-{settings.region}",
    )
    data_source_spec = DataSourceSpec(
        name=names.data_source_name,
        bucket_arn=settings.ingestion_bucket_arn,
        inclusion_prefixes=tuple(settings.inclusion_prefixes),
        parsing_model_arn=(
            resolve_parsing_model_arn(settings.region, settings.parsing_model_arn)
            if settings.use_foundation_parsing
            else None
        ),
        parsing_prompt_text=settings.parsing_prompt_text if settings.use_foundation_parsing else None,
    )

    graph = DependencyGraph()
    bucket = graph.add_node(ResourceNode(VECTOR_BUCKET, ResourceKind.VECTOR_BUCKET, bucket_spec))
    index = graph.add_node(ResourceNode(VECTOR_INDEX, ResourceKind.VECTOR_INDEX, index_spec))
    knowledge_base = graph.add_node(ResourceNode(KNOWLEDGE_BASE, ResourceKind.KNOWLEDGE_BASE, knowledge_base_spec))
    data_source = graph.add_node(
        ResourceNode(DATA_SOURCE, ResourceKind.DATA_SOURCE, data_source_spec, parent=knowledge_base)
    )

    graph.add_edge(bucket, index)
    graph.add_edge(index, knowledge_base)
    graph.add_edge(knowledge_base, data_source)

    logger.debug(f"Built graph for stack {settings.stack_id}: {[n.name for n in graph.creation_order()]}")
    return graph
