"""Schema registry backed by a YAML (or JSON) definition file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional

import yaml
from pydantic import ValidationError

from src.core.exceptions import ErrorCode, InfrastructureException
from src.core.interfaces import ISchemaRegistry
from src.schemas.content_type_schema import SchemaDefinition

logger = logging.getLogger(__name__)


class SchemaRegistry(ISchemaRegistry):
    """
    Registry in memoria di content types e components.

    File atteso::

        content_types:
          api::country.country:
            info: {singularName: country, pluralName: countries, displayName: Country}
            attributes:
              name: {type: string, required: true}
        components:
          shared.address:
            attributes:
              street: {type: string}
    """

    def __init__(
        self,
        content_types: Iterable[SchemaDefinition] = (),
        components: Iterable[SchemaDefinition] = ()
    ) -> None:
        self._content_types: Dict[str, SchemaDefinition] = {item.uid: item for item in content_types}
        self._components: Dict[str, SchemaDefinition] = {item.uid: item for item in components}

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "SchemaRegistry":
        try:
            content_types = [
                cls._definition(uid, definition)
                for uid, definition in (raw.get("content_types") or {}).items()
            ]
            components = [
                cls._definition(uid, definition)
                for uid, definition in (raw.get("components") or {}).items()
            ]
        except ValidationError as exc:
            raise InfrastructureException(
                f"Invalid schema registry definition: {exc}",
                ErrorCode.SCHEMA_REGISTRY_ERROR
            ) from exc
        return cls(content_types, components)

    @classmethod
    def from_file(cls, path: str | Path) -> "SchemaRegistry":
        path = Path(path)
        if not path.exists():
            raise InfrastructureException(
                f"Schema registry file '{path}' does not exist",
                ErrorCode.SCHEMA_REGISTRY_ERROR,
                {"path": str(path)}
            )

        # JSON è un sottoinsieme di YAML: safe_load gestisce entrambi
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise InfrastructureException(
                f"Schema registry file '{path}' is not valid YAML: {exc}",
                ErrorCode.SCHEMA_REGISTRY_ERROR,
                {"path": str(path)}
            ) from exc
        if not isinstance(data, MutableMapping):
            raise InfrastructureException(
                "Schema registry file must contain a mapping",
                ErrorCode.SCHEMA_REGISTRY_ERROR,
                {"path": str(path)}
            )

        registry = cls.from_mapping(data)
        logger.info(
            f"Loaded schema registry from {path}: "
            f"{len(registry._content_types)} content types, {len(registry._components)} components"
        )
        return registry

    @staticmethod
    def _definition(uid: str, raw: Mapping[str, Any]) -> SchemaDefinition:
        name = uid.split(".")[-1].split("::")[-1]
        info = {"singularName": name, "pluralName": name}
        info.update(raw.get("info") or {})
        return SchemaDefinition.model_validate({
            "uid": uid,
            "info": info,
            "attributes": raw.get("attributes") or {}
        })

    def get_content_type(self, uid: str) -> Optional[SchemaDefinition]:
        return self._content_types.get(uid)

    def get_component(self, uid: str) -> Optional[SchemaDefinition]:
        return self._components.get(uid)

    def content_types(self) -> List[SchemaDefinition]:
        return list(self._content_types.values())
