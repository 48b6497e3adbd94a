"""Remote resource client.

Maps each resource kind to its control-plane create/get/delete calls and makes
them idempotent: create errors listed in a node's tolerated create errors are
treated as "already exists" with best-effort identity recovery, and delete
errors listed in its tolerated delete errors are treated as "already gone".
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from botocore.exceptions import ClientError

from ..aws.client import create_boto_client
from ..aws.errors import error_code, is_not_found, matches_error
from ..models.resource import PhysicalIdRule, ResourceKind, ResourceNode
from .errors import IdentityError

logger = logging.getLogger(__name__)


class _NotFound:
    """Sentinel returned by get() when the remote resource does not exist."""

    _instance: Optional[_NotFound] = None

    def __new__(cls) -> _NotFound:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()

RemoteState = Union[dict, _NotFound]


class RemoteResourceClient:
    """Idempotent create/get/delete for resource nodes.

    Attributes:
        s3vectors: boto3 "s3vectors" client (vector buckets and indexes)
        bedrock_agent: boto3 "bedrock-agent" client (knowledge bases, data sources)
    """

    # Operation mapping: kind -> (client attribute, create, get, delete, response key)
    OPERATIONS = {
        ResourceKind.VECTOR_BUCKET: (
            "s3vectors",
            "create_vector_bucket",
            "get_vector_bucket",
            "delete_vector_bucket",
            "vectorBucket",
        ),
        ResourceKind.VECTOR_INDEX: ("s3vectors", "create_index", "get_index", "delete_index", "index"),
        ResourceKind.KNOWLEDGE_BASE: (
            "bedrock_agent",
            "create_knowledge_base",
            "get_knowledge_base",
            "delete_knowledge_base",
            "knowledgeBase",
        ),
        ResourceKind.DATA_SOURCE: (
            "bedrock_agent",
            "create_data_source",
            "get_data_source",
            "delete_data_source",
            "dataSource",
        ),
    }

    def __init__(self, s3vectors: Any, bedrock_agent: Any) -> None:
        self.s3vectors = s3vectors
        self.bedrock_agent = bedrock_agent

    @classmethod
    def from_profile(cls, region: Optional[str] = None, profile: Optional[str] = None) -> RemoteResourceClient:
        """Build a client with fresh boto3 clients for both control planes."""
        return cls(
            s3vectors=create_boto_client("s3vectors", region_name=region, profile_name=profile),
            bedrock_agent=create_boto_client("bedrock-agent", region_name=region, profile_name=profile),
        )

    def create(self, node: ResourceNode) -> str:
        """Create the remote resource and assign the node's physical id.

        Args:
            node: Node to create

        Returns:
            Physical id of the created (or already existing) resource

        Raises:
            IdentityError: If a tolerated create error occurred and the existing
                resource could not be identified
            ClientError: For any non-tolerated remote error
        """
        client, create_method, _, _, response_key = self._operations(node)

        try:
            response = getattr(client, create_method)(**self._create_params(node))
        except ClientError as e:
            if not matches_error(e, node.tolerated_create_errors or ()):
                logger.error(f"Failed to create {node.kind.value} '{node.name}': {error_code(e)}")
                raise
            logger.info(f"Create of {node.kind.value} '{node.name}' tolerated {error_code(e)}, recovering identity")
            physical_id = self.lookup(node)
            if physical_id is None:
                raise IdentityError(f"Could not recover identity of existing {node.kind.value} '{node.name}'") from e
            node.assign_physical_id(physical_id)
            return physical_id

        if node.physical_id_rule == PhysicalIdRule.FROM_SPEC:
            physical_id = node.derived_physical_id()
        else:
            physical_id = self._id_from_response(node, response.get(response_key, {}))

        node.assign_physical_id(physical_id)
        logger.info(f"Created {node.kind.value} '{node.name}': {physical_id}")
        return physical_id

    def get(self, node: ResourceNode) -> RemoteState:
        """Describe the remote resource.

        Returns:
            The service's description of the resource, or NOT_FOUND

        Raises:
            IdentityError: If the node has no physical id
            ClientError: For errors other than not-found
        """
        client, _, get_method, _, response_key = self._operations(node)

        try:
            response = getattr(client, get_method)(**self._identity_params(node))
        except ClientError as e:
            if is_not_found(e):
                return NOT_FOUND
            raise

        return response.get(response_key, {})

    def delete(self, node: ResourceNode) -> None:
        """Delete the remote resource; tolerated errors count as success.

        Raises:
            IdentityError: If the node has no physical id
            ClientError: For any non-tolerated remote error
        """
        client, _, _, delete_method, _ = self._operations(node)

        try:
            getattr(client, delete_method)(**self._identity_params(node))
        except ClientError as e:
            if not matches_error(e, node.tolerated_delete_errors or ()):
                logger.error(f"Failed to delete {node.kind.value} '{node.name}': {error_code(e)}")
                raise
            logger.info(f"Delete of {node.kind.value} '{node.name}' tolerated {error_code(e)}")
            return

        logger.info(f"Delete requested for {node.kind.value} '{node.name}': {node.physical_id}")

    def lookup(self, node: ResourceNode) -> Optional[str]:
        """Best-effort identity resolution without creating anything.

        FROM_SPEC identities are derived from node parameters. FROM_RESPONSE identities
        are found by exact name in the service listing; zero or several matches
        resolve to None.
        """
        if node.physical_id is not None:
            return node.physical_id

        if node.physical_id_rule == PhysicalIdRule.FROM_SPEC:
            return node.derived_physical_id()

        if node.kind == ResourceKind.KNOWLEDGE_BASE:
            summaries = self._paginate(
                self.bedrock_agent, "list_knowledge_bases", "knowledgeBaseSummaries", {}
            )
            return self._unique_by_name(node, summaries, "knowledgeBaseId")

        if node.kind == ResourceKind.DATA_SOURCE:
            if node.parent is None or node.parent.physical_id is None:
                logger.info(f"Parent of data source '{node.name}' is unresolved, cannot look it up")
                return None
            try:
                summaries = self._paginate(
                    self.bedrock_agent,
                    "list_data_sources",
                    "dataSourceSummaries",
                    {"knowledgeBaseId": node.parent_id},
                )
            except ClientError as e:
                if is_not_found(e):
                    return None
                raise
            return self._unique_by_name(node, summaries, "dataSourceId")

        raise IdentityError(f"No lookup rule for {node.kind.value}")

    def _operations(self, node: ResourceNode) -> tuple[Any, str, str, str, str]:
        attribute, create_method, get_method, delete_method, response_key = self.OPERATIONS[node.kind]
        return getattr(self, attribute), create_method, get_method, delete_method, response_key

    def _create_params(self, node: ResourceNode) -> dict[str, Any]:
        if node.kind == ResourceKind.DATA_SOURCE:
            return node.spec.create_params(node.parent_id)  # type: ignore[call-arg]
        return node.spec.create_params()  # type: ignore[call-arg]

    def _identity_params(self, node: ResourceNode) -> dict[str, Any]:
        if node.physical_id is None:
            raise IdentityError(f"Node '{node.name}' has no physical id")

        if node.kind in (ResourceKind.VECTOR_BUCKET, ResourceKind.VECTOR_INDEX):
            return node.spec.identity_params()  # type: ignore[call-arg]
        if node.kind == ResourceKind.KNOWLEDGE_BASE:
            return node.spec.identity_params(node.physical_id)  # type: ignore[call-arg]
        return node.spec.identity_params(node.parent_id, node.physical_id)  # type: ignore[call-arg]

    def _id_from_response(self, node: ResourceNode, body: dict) -> str:
        id_field = "knowledgeBaseId" if node.kind == ResourceKind.KNOWLEDGE_BASE else "dataSourceId"
        physical_id = body.get(id_field)
        if not physical_id:
            raise IdentityError(f"Create response for '{node.name}' has no {id_field}")
        return physical_id

    def _paginate(self, client: Any, operation: str, items_key: str, params: dict[str, Any]) -> list[dict]:
        items: list[dict] = []
        paginator = client.get_paginator(operation)
        for page in paginator.paginate(**params):
            items.extend(page.get(items_key, []))
        return items

    def _unique_by_name(self, node: ResourceNode, summaries: list[dict], id_field: str) -> Optional[str]:
        name = node.spec.name  # type: ignore[union-attr]
        matching = [s[id_field] for s in summaries if s.get("name") == name]
        if len(matching) == 1:
            logger.debug(f"Resolved {node.kind.value} '{name}' to {matching[0]}")
            return matching[0]
        if len(matching) > 1:
            logger.warning(f"Multiple {node.kind.value} resources named '{name}', not guessing")
        return None

