"""
Component Processor for CSV Import System.

Rebuilds component (nested-record) values from the dot-notation captures
collected during validation. Repeatable components are packed in CSV cells
as comma-separated values, one segment per generated entry.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from src.core.interfaces import ISchemaRegistry
from src.schemas.content_type_schema import AttributeDescriptor, AttributeType, SchemaDefinition

from .models import ValidatedRow
from .relation_resolver import RelationResolver
from .value_coercer import CoercionError, coerce_value, is_present

logger = logging.getLogger(__name__)


class ComponentProcessor:
    """
    Processor dei component.

    Il capture grezzo viene sempre scartato, anche quando non produce alcun valore.
    """

    def __init__(self, schema_registry: ISchemaRegistry, relation_resolver: RelationResolver):
        self.schema_registry = schema_registry
        self.relation_resolver = relation_resolver

    async def process(self, rows: List[ValidatedRow], schema: SchemaDefinition) -> List[ValidatedRow]:
        """
        Costruisce i valori dei component per ogni riga.

        Args:
            rows: Righe dopo la risoluzione delle relazioni
            schema: Schema del content type

        Returns:
            Nuove righe con i component valorizzati e component_captures svuotati
        """
        component_attributes = schema.attributes_of_type(AttributeType.COMPONENT)
        processed = []

        for row in rows:
            processed_row = ValidatedRow(
                row_number=row.row_number,
                data=dict(row.data),
                relation_captures=dict(row.relation_captures),
                diagnostics=list(row.diagnostics)
            )

            for field_name, attribute in component_attributes.items():
                capture = row.component_captures.get(field_name)
                if not capture:
                    continue

                try:
                    value = await self.build_component_value(field_name, attribute, capture, processed_row)
                except Exception as e:
                    logger.error(f"Error processing component {field_name}: {e}")
                    processed_row.diagnostics.append(
                        f'Row {row.row_number}: component "{field_name}" could not be processed: {e}'
                    )
                    continue

                if value is not None:
                    processed_row.data[field_name] = value

            processed.append(processed_row)

        return processed

    async def build_component_value(
        self,
        field_name: str,
        attribute: AttributeDescriptor,
        capture: Mapping[str, str],
        row: ValidatedRow
    ) -> Optional[Union[Dict[str, Any], List[Dict[str, Any]]]]:
        """
        Costruisce il valore di un component (singolo o lista per i repeatable).

        Returns:
            Dizionario, lista di dizionari oppure None se nessun sotto-campo è valorizzato
        """
        component_schema = self.schema_registry.get_component(attribute.component) if attribute.component else None
        if component_schema is None:
            logger.error(f"Component schema not found: {attribute.component}")
            row.diagnostics.append(
                f'Row {row.row_number}: component schema "{attribute.component}" not found for "{field_name}"'
            )
            return None

        if attribute.repeatable:
            entries = []
            for entry_values in self.parse_component_rows(capture):
                entry = await self.process_component_data(field_name, entry_values, component_schema, row)
                if entry:
                    entries.append(entry)
            return entries or None

        return await self.process_component_data(field_name, capture, component_schema, row)

    @staticmethod
    def parse_component_rows(capture: Mapping[str, str]) -> List[Dict[str, str]]:
        """
        Espande un capture repeatable in una entry per segmento.

        Il numero di entry è dato dallo split più lungo; i segmenti vuoti (o
        mancanti) sono omessi e le entry senza valori sono scartate.

        Example:
            {"street": "A,B", "city": "X"} -> [{"street": "A", "city": "X"}, {"street": "B"}]
        """
        if not capture:
            return []

        split_values = {
            subfield: [segment.strip() for segment in str(value).split(',')]
            for subfield, value in capture.items()
        }
        entry_count = max(len(segments) for segments in split_values.values())

        entries = []
        for index in range(entry_count):
            entry = {
                subfield: segments[index]
                for subfield, segments in split_values.items()
                if index < len(segments) and segments[index]
            }
            if entry:
                entries.append(entry)
        return entries

    async def process_component_data(
        self,
        field_name: str,
        values: Mapping[str, str],
        component_schema: SchemaDefinition,
        row: ValidatedRow
    ) -> Optional[Dict[str, Any]]:
        """
        Converte i sotto-campi secondo lo schema del component.

        Un sotto-campo relation (es. "do_number.name") viene risolto con la
        stessa ricerca delle relazioni di primo livello; un sotto-campo
        component viene processato ricorsivamente.
        """
        data: Dict[str, Any] = {}
        nested_captures: Dict[str, Dict[str, str]] = {}

        for path, value in values.items():
            if not is_present(value):
                continue

            subfield, _, rest = path.partition('.')
            attribute = component_schema.attributes.get(subfield)
            if attribute is None:
                continue

            if attribute.type == AttributeType.RELATION:
                resolved = await self._resolve_relation(field_name, subfield, attribute, value, rest, row)
                if resolved is not None:
                    data[subfield] = resolved
            elif attribute.type == AttributeType.COMPONENT:
                if rest:
                    nested_captures.setdefault(subfield, {})[rest] = value
            elif not rest:
                try:
                    data[subfield] = coerce_value(value, attribute, subfield)
                except CoercionError as e:
                    row.diagnostics.append(f'Row {row.row_number}: component "{field_name}": {e.message}')

        for subfield, nested_capture in nested_captures.items():
            nested_value = await self.build_component_value(
                f"{field_name}.{subfield}",
                component_schema.attributes[subfield],
                nested_capture,
                row
            )
            if nested_value is not None:
                data[subfield] = nested_value

        return data or None

    async def _resolve_relation(
        self,
        field_name: str,
        subfield: str,
        attribute: AttributeDescriptor,
        value: str,
        rest: str,
        row: ValidatedRow
    ) -> Optional[Any]:
        search_field = rest.split('.')[0] or None
        try:
            resolved = await self.relation_resolver.resolve_value(attribute, value, search_field)
        except Exception as e:
            logger.warning(f"Relation lookup failed for component field '{field_name}.{subfield}': {e}")
            resolved = None

        if resolved is None:
            row.diagnostics.append(
                f'Row {row.row_number}: relation "{field_name}.{subfield}" value "{value}" not found'
            )
        return resolved
