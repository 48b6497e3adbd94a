"""Resource node model.

A ResourceNode is one provisioning unit: a remote resource of a fixed kind,
the parameter spec used to build its create/get/delete requests, the error
codes tolerated while creating and deleting it, and its physical identity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from ..aws.errors import ALREADY_EXISTS_CODES, THROTTLING_CODES
from ..lifecycle.errors import IdentityError


class ResourceKind(Enum):
    """Closed set of resource kinds the lifecycle layer can manage."""

    VECTOR_BUCKET = "vector-bucket"
    VECTOR_INDEX = "vector-index"
    KNOWLEDGE_BASE = "knowledge-base"
    DATA_SOURCE = "data-source"


class PhysicalIdRule(Enum):
    """How a node's physical identity is resolved at creation time."""

    FROM_SPEC = "from-spec"
    FROM_RESPONSE = "from-response"


@dataclass(frozen=True)
class VectorBucketSpec:
    """S3 Vectors bucket parameters."""

    bucket_name: str
    region: str
    account: str

    @property
    def arn(self) -> str:
        return f"arn:aws:s3vectors:{self.region}:{self.account}:bucket/{self.bucket_name}"

    def create_params(self) -> dict[str, Any]:
        return {"vectorBucketName": self.bucket_name}

    def identity_params(self) -> dict[str, Any]:
        return {"vectorBucketArn": self.arn}


@dataclass(frozen=True)
class VectorIndexSpec:
    """S3 Vectors index parameters.

    Attributes:
        bucket_arn: ARN of the vector bucket holding the index
        index_name: Index name, unique within the bucket
        dimension: Vector dimension, must match the embedding model
        distance_metric: "cosine" or "euclidean"
        data_type: Vector element type
    """

    bucket_arn: str
    index_name: str
    dimension: int
    distance_metric: str = "cosine"
    data_type: str = "float32"

    @property
    def arn(self) -> str:
        return f"{self.bucket_arn}/index/{self.index_name}"

    def create_params(self) -> dict[str, Any]:
        return {
            "vectorBucketArn": self.bucket_arn,
            "indexName": self.index_name,
            "dataType": self.data_type,
            "dimension": self.dimension,
            "distanceMetric": self.distance_metric,
        }

    def identity_params(self) -> dict[str, Any]:
        return {"vectorBucketArn": self.bucket_arn, "indexName": self.index_name}


@dataclass(frozen=True)
class KnowledgeBaseSpec:
    """Knowledge base parameters, storing embeddings in an S3 Vectors index."""

    name: str
    role_arn: str
    embedding_model_arn: str
    dimension: int
    vector_bucket_arn: str
    index_arn: str
    embedding_data_type: str = "FLOAT32"
    client_token: Optional[str] = None
    description: Optional[str] = None

    def create_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "name": self.name,
            "roleArn": self.role_arn,
            "knowledgeBaseConfiguration": {
                "type": "VECTOR",
                "vectorKnowledgeBaseConfiguration": {
                    "embeddingModelArn": self.embedding_model_arn,
                    "embeddingModelConfiguration": {
                        "bedrockEmbeddingModelConfiguration": {
                            "dimensions": self.dimension,
                            "embeddingDataType": self.embedding_data_type,
                        }
                    },
                },
            },
            "storageConfiguration": {
                "type": "S3_VECTORS",
                "s3VectorsConfiguration": {
                    "vectorBucketArn": self.vector_bucket_arn,
                    "indexArn": self.index_arn,
                },
            },
        }
        if self.client_token:
            params["clientToken"] = self.client_token
        if self.description:
            params["description"] = self.description
        return params

    def identity_params(self, knowledge_base_id: str) -> dict[str, Any]:
        return {"knowledgeBaseId": knowledge_base_id}


@dataclass(frozen=True)
class DataSourceSpec:
    """Document-source binding parameters (S3 ingestion bucket -> knowledge base)."""

    name: str
    bucket_arn: str
    inclusion_prefixes: tuple[str, ...] = ("docs/",)
    max_tokens: int = 1000
    overlap_percentage: int = 30
    parsing_model_arn: Optional[str] = None
    parsing_prompt_text: Optional[str] = None

    def create_params(self, knowledge_base_id: str) -> dict[str, Any]:
        ingestion: dict[str, Any] = {
            "chunkingConfiguration": {
                "chunkingStrategy": "FIXED_SIZE",
                "fixedSizeChunkingConfiguration": {
                    "maxTokens": self.max_tokens,
                    "overlapPercentage": self.overlap_percentage,
                },
            }
        }

        # Foundation model parsing only when a parsing model is configured
        if self.parsing_model_arn:
            model_config: dict[str, Any] = {"modelArn": self.parsing_model_arn}
            if self.parsing_prompt_text:
                model_config["parsingPrompt"] = {"parsingPromptText": self.parsing_prompt_text}
            ingestion["parsingConfiguration"] = {
                "parsingStrategy": "BEDROCK_FOUNDATION_MODEL",
                "bedrockFoundationModelConfiguration": model_config,
            }

        return {
            "knowledgeBaseId": knowledge_base_id,
            "name": self.name,
            "description": f"S3 data source for Knowledge Base - {self.name}",
            "dataSourceConfiguration": {
                "type": "S3",
                "s3Configuration": {
                    "bucketArn": self.bucket_arn,
                    "inclusionPrefixes": list(self.inclusion_prefixes),
                },
            },
            "vectorIngestionConfiguration": ingestion,
        }

    def identity_params(self, knowledge_base_id: str, data_source_id: str) -> dict[str, Any]:
        return {"knowledgeBaseId": knowledge_base_id, "dataSourceId": data_source_id}


ResourceSpec = Union[VectorBucketSpec, VectorIndexSpec, KnowledgeBaseSpec, DataSourceSpec]

SPEC_TYPES: dict[ResourceKind, type] = {
    ResourceKind.VECTOR_BUCKET: VectorBucketSpec,
    ResourceKind.VECTOR_INDEX: VectorIndexSpec,
    ResourceKind.KNOWLEDGE_BASE: KnowledgeBaseSpec,
    ResourceKind.DATA_SOURCE: DataSourceSpec,
}

PHYSICAL_ID_RULES: dict[ResourceKind, PhysicalIdRule] = {
    ResourceKind.VECTOR_BUCKET: PhysicalIdRule.FROM_SPEC,
    ResourceKind.VECTOR_INDEX: PhysicalIdRule.FROM_SPEC,
    ResourceKind.KNOWLEDGE_BASE: PhysicalIdRule.FROM_RESPONSE,
    ResourceKind.DATA_SOURCE: PhysicalIdRule.FROM_RESPONSE,
}

DEFAULT_TOLERATED_CREATE_ERRORS: dict[ResourceKind, frozenset[str]] = {
    ResourceKind.VECTOR_BUCKET: ALREADY_EXISTS_CODES | THROTTLING_CODES,
    ResourceKind.VECTOR_INDEX: ALREADY_EXISTS_CODES | THROTTLING_CODES,
    ResourceKind.KNOWLEDGE_BASE: frozenset({"ConflictException"}),
    ResourceKind.DATA_SOURCE: frozenset({"ConflictException"}),
}

DEFAULT_TOLERATED_DELETE_ERRORS: dict[ResourceKind, frozenset[str]] = {
    ResourceKind.VECTOR_BUCKET: frozenset({"ResourceNotFoundException", "NoSuchBucket"}) | THROTTLING_CODES,
    ResourceKind.VECTOR_INDEX: frozenset({"ResourceNotFoundException", "NoSuchIndex"}) | THROTTLING_CODES,
    ResourceKind.KNOWLEDGE_BASE: frozenset({"ResourceNotFoundException", "NotFound", "ConflictException"}),
    ResourceKind.DATA_SOURCE: frozenset({"ResourceNotFoundException"}),
}


@dataclass(eq=False)
class ResourceNode:
    """A single provisioning unit in the dependency graph.

    Nodes compare by identity: each node is exclusively owned by the graph
    that holds it.

    Attributes:
        name: Unique node name within the graph
        kind: Resource kind, selects the remote API used
        spec: Kind-specific parameter spec
        tolerated_create_errors: Error codes treated as success on create
        tolerated_delete_errors: Error codes treated as success on delete
        parent: Node whose physical id scopes this one (data source -> knowledge base)
        physical_id: Remote identity, assigned once
    """

    name: str
    kind: ResourceKind
    spec: ResourceSpec
    tolerated_create_errors: Optional[frozenset[str]] = None
    tolerated_delete_errors: Optional[frozenset[str]] = None
    parent: Optional[ResourceNode] = None
    physical_id: Optional[str] = field(default=None)

    def __post_init__(self) -> None:
        expected = SPEC_TYPES[self.kind]
        if not isinstance(self.spec, expected):
            raise TypeError(f"Node '{self.name}' of kind {self.kind.value} requires {expected.__name__}")

        if self.kind == ResourceKind.DATA_SOURCE and self.parent is None:
            raise ValueError(f"Data source node '{self.name}' requires a knowledge base parent")

        if self.tolerated_create_errors is None:
            self.tolerated_create_errors = DEFAULT_TOLERATED_CREATE_ERRORS[self.kind]
        if self.tolerated_delete_errors is None:
            self.tolerated_delete_errors = DEFAULT_TOLERATED_DELETE_ERRORS[self.kind]

    @property
    def physical_id_rule(self) -> PhysicalIdRule:
        return PHYSICAL_ID_RULES[self.kind]

    @property
    def parent_id(self) -> str:
        """Physical id of the parent node.

        Raises:
            IdentityError: If the node has no parent or the parent is unresolved
        """
        if self.parent is None or self.parent.physical_id is None:
            raise IdentityError(f"Parent of '{self.name}' has no physical id")
        return self.parent.physical_id

    def derived_physical_id(self) -> str:
        """Physical id computed from the parameter spec, for FROM_SPEC nodes."""
        if self.physical_id_rule != PhysicalIdRule.FROM_SPEC:
            raise IdentityError(f"Node '{self.name}' takes its identity from the create response")
        return self.spec.arn  # type: ignore[union-attr]

    def assign_physical_id(self, physical_id: str) -> None:
        """Record the node's physical id.

        Assigning the same id again is a no-op; assigning a different one fails.

        Raises:
            IdentityError: If a different physical id was already assigned
        """
        if not physical_id:
            raise IdentityError(f"Empty physical id for '{self.name}'")
        if self.physical_id is not None and self.physical_id != physical_id:
            raise IdentityError(
                f"Node '{self.name}' already has physical id {self.physical_id}, refusing {physical_id}"
            )
        self.physical_id = physical_id

    def __repr__(self) -> str:
        return f"ResourceNode(name={self.name!r}, kind={self.kind.value}, physical_id={self.physical_id!r})"
