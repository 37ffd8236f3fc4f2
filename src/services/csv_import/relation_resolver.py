"""
Relation Resolver for CSV Import System.

Converts human-readable relation references (ids, names, titles, explicit
``relation.field`` lookups) into target entity identifiers.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Union

from src.core.interfaces import IEntityStore, ISchemaRegistry
from src.schemas.content_type_schema import AttributeDescriptor, AttributeType, SchemaDefinition

from .models import ValidatedRow
from .value_coercer import is_present

logger = logging.getLogger(__name__)


class RelationMatchStrategy(ABC):
    """Sceglie i campi dello schema target su cui cercare un valore di relazione"""

    @abstractmethod
    def candidate_fields(self, target_schema: SchemaDefinition) -> List[str]:
        pass


class CommonFieldMatchStrategy(RelationMatchStrategy):
    """Campi leggibili comuni, in ordine di priorità, purché di tipo string"""

    COMMON_FIELDS = ('name', 'title', 'slug', 'displayName', 'label', 'country')

    def candidate_fields(self, target_schema: SchemaDefinition) -> List[str]:
        fields = []
        for field_name in self.COMMON_FIELDS:
            attribute = target_schema.attributes.get(field_name)
            if attribute is not None and attribute.type == AttributeType.STRING:
                fields.append(field_name)
        return fields


def as_identifier(value: Any) -> Optional[Union[int, float]]:
    """Ritorna il valore come id numerico se è interamente un numero, altrimenti None"""
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


class RelationResolver:
    """
    Risolve i campi relation delle righe validate.

    Le relazioni non risolte vengono omesse dalla riga (mai impostate a null)
    e registrate nelle diagnostics della riga; non sollevano eccezioni.
    """

    def __init__(
        self,
        entity_store: IEntityStore,
        schema_registry: ISchemaRegistry,
        match_strategy: Optional[RelationMatchStrategy] = None
    ):
        self.entity_store = entity_store
        self.schema_registry = schema_registry
        self.match_strategy = match_strategy or CommonFieldMatchStrategy()

    async def resolve(self, rows: List[ValidatedRow], schema: SchemaDefinition) -> List[ValidatedRow]:
        """
        Risolve tutte le relazioni dello schema per ogni riga.

        Args:
            rows: Righe validate (con eventuali relation_captures)
            schema: Schema del content type

        Returns:
            Nuove righe con id risolti e relation_captures consumati
        """
        relation_attributes = schema.attributes_of_type(AttributeType.RELATION)
        processed = []

        for row in rows:
            processed_row = ValidatedRow(
                row_number=row.row_number,
                data=dict(row.data),
                component_captures={name: dict(values) for name, values in row.component_captures.items()},
                diagnostics=list(row.diagnostics)
            )

            for field_name, attribute in relation_attributes.items():
                capture = row.relation_captures.get(field_name)
                if capture is not None:
                    raw_value, relation_field = capture.value, capture.relation_field
                elif is_present(row.data.get(field_name)):
                    raw_value, relation_field = str(row.data[field_name]), None
                else:
                    continue

                try:
                    resolved = await self.resolve_value(attribute, raw_value, relation_field)
                except Exception as e:
                    logger.warning(f"Relation lookup failed for field '{field_name}' (row {row.row_number}): {e}")
                    processed_row.diagnostics.append(
                        f'Row {row.row_number}: relation "{field_name}" lookup failed: {e}'
                    )
                    processed_row.data.pop(field_name, None)
                    continue

                if resolved is None:
                    processed_row.data.pop(field_name, None)
                    processed_row.diagnostics.append(
                        f'Row {row.row_number}: relation "{field_name}" value "{raw_value}" not found'
                    )
                else:
                    processed_row.data[field_name] = resolved

            processed.append(processed_row)

        return processed

    async def resolve_value(
        self,
        attribute: AttributeDescriptor,
        raw_value: str,
        relation_field: Optional[str] = None
    ) -> Optional[Union[Any, List[Any]]]:
        """
        Risolve un valore di relazione secondo il tipo di relazione.

        Returns:
            id (to-one), lista di id (to-many) oppure None se nulla è stato trovato
        """
        if not attribute.target:
            return None

        if attribute.relation is not None and attribute.relation.is_to_many:
            identifiers = []
            for token in str(raw_value).split(','):
                token = token.strip()
                if not token:
                    continue
                entity = await self.find_related_entity(attribute.target, token, relation_field)
                if entity is not None:
                    identifiers.append(entity['id'])
            return identifiers or None

        entity = await self.find_related_entity(attribute.target, raw_value, relation_field)
        return entity['id'] if entity is not None else None

    async def find_related_entity(
        self,
        target_uid: str,
        value: str,
        relation_field: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Trova l'entità referenziata.

        Ordine di ricerca:
        1. Campo esplicito (relation.field): match esatto case-insensitive, poi contains
        2. Valore interamente numerico: match per id
        3. Campi comuni dello schema target: match esatto case-insensitive
        4. Contains sul primo campo comune disponibile

        Args:
            target_uid: Uid del content type target
            value: Valore da cercare
            relation_field: Campo di ricerca esplicito (opzionale)
        """
        target_schema = self.schema_registry.get_content_type(target_uid)

        if relation_field and target_schema is not None and relation_field in target_schema.attributes:
            entity = await self._find_first(target_uid, {relation_field: {'$eqi': value}})
            if entity is None:
                entity = await self._find_first(target_uid, {relation_field: {'$containsi': value}})
            if entity is not None:
                return entity

        identifier = as_identifier(value)
        if identifier is not None:
            entity = await self._find_first(target_uid, {'id': identifier})
            if entity is not None:
                return entity

        if target_schema is None:
            return None

        search_fields = self.match_strategy.candidate_fields(target_schema)
        for field_name in search_fields:
            entity = await self._find_first(target_uid, {field_name: {'$eqi': value}})
            if entity is not None:
                return entity

        if search_fields:
            return await self._find_first(target_uid, {search_fields[0]: {'$containsi': value}})

        return None

    async def _find_first(self, target_uid: str, filters: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        entities = await self.entity_store.find_many(target_uid, filters=filters, limit=1)
        return entities[0] if entities else None
