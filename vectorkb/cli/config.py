"""Configuration loading.

Values come from a YAML file ($VECTORKB_CONFIG or ~/.vectorkb/config.yaml),
then environment variables, then CLI options (applied by the commands).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from ..models.operation import DeletionBehavior
from ..stack.blueprint import StackSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".vectorkb" / "config.yaml"

ENV_OVERRIDES = {
    "VECTORKB_PROFILE": "aws_profile",
    "VECTORKB_REGION": "region",
    "VECTORKB_ACCOUNT": "account",
    "VECTORKB_STACK_ID": "stack_id",
    "VECTORKB_LOG_LEVEL": "log_level",
    "VECTORKB_STORAGE_PATH": "storage_path",
}


@dataclass
class Config:
    """CLI configuration."""

    aws_profile: Optional[str] = None
    region: Optional[str] = None
    account: Optional[str] = None
    stack_id: str = "vectorkb"
    role_arn: str = ""
    ingestion_bucket_arn: str = ""
    inclusion_prefixes: list[str] = field(default_factory=lambda: ["docs/"])
    vector_dimension: int = 1024
    embedding_model_arn: Optional[str] = None
    distance_metric: str = "cosine"
    use_foundation_parsing: bool = False
    parsing_model_arn: Optional[str] = None
    parsing_prompt_text: Optional[str] = None
    knowledge_base_name: Optional[str] = None
    data_source_name: Optional[str] = None
    vector_bucket_name: Optional[str] = None
    vector_index_name: Optional[str] = None
    deletion_behavior: str = "DELETE"
    poll_seconds: float = 5.0
    max_minutes: float = 15.0
    raise_on_cleanup_failure: bool = False
    log_level: str = "INFO"
    storage_path: Optional[str] = None

    @classmethod
    def load(cls, path: Optional[str] = None) -> Config:
        """Load configuration from YAML and environment.

        Args:
            path: Config file path (default: $VECTORKB_CONFIG or ~/.vectorkb/config.yaml)

        Returns:
            Config instance (defaults when no file exists)

        Raises:
            ValueError: If the file is not a YAML mapping
        """
        config_path = Path(path or os.environ.get("VECTORKB_CONFIG") or DEFAULT_CONFIG_PATH)
        data: dict[str, Any] = {}

        if config_path.exists():
            with open(config_path) as f:
                loaded = yaml.safe_load(f)
            if loaded is not None and not isinstance(loaded, dict):
                raise ValueError(f"Config file {config_path} must contain a mapping")
            data = loaded or {}
            logger.debug(f"Loaded config from {config_path}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        config = cls(**{key: value for key, value in data.items() if key in known})

        for env_var, attribute in ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value:
                setattr(config, attribute, value)

        return config

    @property
    def deletion(self) -> DeletionBehavior:
        """Deletion behavior as an enum.

        Raises:
            ValueError: If deletion_behavior is neither DELETE nor RETAIN
        """
        return DeletionBehavior(self.deletion_behavior.upper())

    def stack_settings(self) -> StackSettings:
        """Build stack settings; region and account must be resolved first.

        Raises:
            ValueError: If region or account is missing
        """
        if not self.region or not self.account:
            raise ValueError("region and account must be set before building the stack")

        return StackSettings(
            stack_id=self.stack_id,
            region=self.region,
            account=self.account,
            role_arn=self.role_arn,
            ingestion_bucket_arn=self.ingestion_bucket_arn,
            inclusion_prefixes=tuple(self.inclusion_prefixes),
            vector_dimension=int(self.vector_dimension),
            embedding_model_arn=self.embedding_model_arn,
            distance_metric=self.distance_metric,
            use_foundation_parsing=self.use_foundation_parsing,
            parsing_model_arn=self.parsing_model_arn,
            parsing_prompt_text=self.parsing_prompt_text,
            knowledge_base_name=self.knowledge_base_name,
            data_source_name=self.data_source_name,
            vector_bucket_name=self.vector_bucket_name,
            vector_index_name=self.vector_index_name,
        )
