"""
Intent / entity catalog.

The catalog is configuration data: supported intents with their examples,
literal detection patterns and relation rules; supported entity types;
the trigger phrases that allow a remembered entity to be copied forward;
service metadata and topic display names.

Loaded once at startup from YAML. A missing or malformed catalog is the
only hard failure of the NLP layer.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "catalog.yaml"


@dataclass
class CatalogError(Exception):
    """Catalog load error with structured information."""

    step: str  # "file_load", "parse", "validation"
    error_message: str
    catalog_path: Optional[str] = None

    def __str__(self) -> str:
        return f"[{self.step}] {self.error_message}"


class IntentRelation(BaseModel):
    """Rule that adds a related intent when its owner is detected."""

    intent: str
    condition: Literal["always", "contains"] = "always"
    keywords: List[str] = Field(default_factory=list)


class IntentDefinition(BaseModel):
    description: str = ""
    examples: List[str] = Field(default_factory=list)
    detection_patterns: List[str] = Field(default_factory=list)
    related: List[IntentRelation] = Field(default_factory=list)


class EntityDefinition(BaseModel):
    description: str = ""
    examples: List[str] = Field(default_factory=list)


class InferenceTrigger(BaseModel):
    """Message evidence required to copy a known entity forward."""

    categories: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


class ServiceMetadata(BaseModel):
    name: str = "ERP Demo"
    type: str = "ERP"
    trial_duration: int = 7
    admin_contact: str = ""
    website_url: str = ""
    features: List[str] = Field(default_factory=list)


class NLPCatalog(BaseModel):
    """Read-only intent/entity configuration."""

    service: ServiceMetadata = Field(default_factory=ServiceMetadata)
    intents: Dict[str, IntentDefinition] = Field(default_factory=dict)
    entities: Dict[str, EntityDefinition] = Field(default_factory=dict)
    trigger_phrases: Dict[str, List[str]] = Field(default_factory=dict)
    inference_triggers: Dict[str, InferenceTrigger] = Field(default_factory=dict)
    default_inference_trigger: Optional[InferenceTrigger] = None
    topic_names: Dict[str, str] = Field(default_factory=dict)

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def supported_intents(self) -> List[str]:
        return list(self.intents)

    @property
    def supported_entities(self) -> List[str]:
        return list(self.entities)

    def intent_examples(self) -> Dict[str, List[str]]:
        return {name: definition.examples for name, definition in self.intents.items()}

    def entity_examples(self) -> Dict[str, List[str]]:
        return {name: definition.examples for name, definition in self.entities.items()}

    def topic_name(self, topic: str) -> str:
        return self.topic_names.get(topic, topic)


def load_catalog(path: Union[str, Path, None] = None) -> NLPCatalog:
    """
    Load the catalog from a YAML file.

    Args:
        path: Catalog file; None uses the packaged catalog.yaml

    Raises:
        CatalogError: file missing, not YAML, or not a valid catalog
    """
    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH

    if not catalog_path.exists():
        raise CatalogError(
            step="file_load",
            error_message=f"Catalog file not found: {catalog_path}",
            catalog_path=str(catalog_path),
        )

    try:
        with open(catalog_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CatalogError(
            step="parse",
            error_message=f"Invalid YAML: {str(e)}",
            catalog_path=str(catalog_path),
        ) from e

    if not isinstance(data, dict):
        raise CatalogError(
            step="parse",
            error_message="Catalog root must be a mapping",
            catalog_path=str(catalog_path),
        )

    try:
        catalog = NLPCatalog(**data)
    except ValidationError as e:
        raise CatalogError(
            step="validation",
            error_message=str(e),
            catalog_path=str(catalog_path),
        ) from e

    logger.info(
        f"Catalog loaded: {len(catalog.intents)} intents, "
        f"{len(catalog.entities)} entities from {catalog_path}"
    )
    return catalog
