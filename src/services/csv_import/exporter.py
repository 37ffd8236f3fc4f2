"""
CSV Exporter.

Inverse of the import flattening: components become ``field.subfield`` /
``field.<n>.subfield`` columns and relations become a single
``field.<first target attribute>`` column, so an exported file can be
edited and imported again.
"""
from __future__ import annotations

import csv
import io
import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from src.core.interfaces import IEntityStore, ISchemaRegistry
from src.schemas.content_type_schema import AttributeType, SchemaDefinition

from .value_coercer import is_present

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = ('createdAt', 'updatedAt', 'publishedAt')
COMPONENT_INTERNAL_KEYS = ('id', '__component')
RELATION_LABEL_FALLBACKS = ('name', 'title', 'displayName', 'id')
INTERNAL_PREFIX = '__'


def format_cell(value: Any) -> str:
    """Rappresentazione testuale di una cella (None -> '', bool -> true/false)"""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_export_filename(schema: SchemaDefinition, today: Optional[date] = None) -> str:
    """Es. "Country_Code_export_2024-01-15.csv" """
    today = today or date.today()
    display_name = '_'.join(schema.display_name.split())
    return f"{display_name}_export_{today.isoformat()}.csv"


class CSVExporter:
    """Esporta le entità di un content type in CSV piatto"""

    def __init__(self, entity_store: IEntityStore, schema_registry: ISchemaRegistry, max_rows: int = 1000):
        self.entity_store = entity_store
        self.schema_registry = schema_registry
        self.max_rows = max_rows

    async def export(self, schema: SchemaDefinition, filters: Optional[Mapping[str, Any]] = None) -> str:
        """
        Esporta fino a max_rows entità in CSV.

        Args:
            schema: Content type da esportare
            filters: Filtri dell'entity store, passati invariati

        Returns:
            Contenuto CSV (stringa vuota se non ci sono entità)
        """
        populate = [
            name for name, attribute in schema.attributes.items()
            if attribute.type in (AttributeType.RELATION, AttributeType.COMPONENT)
        ]

        entries = await self.entity_store.find_many(
            schema.uid,
            filters=filters or {},
            populate=populate,
            limit=self.max_rows
        )
        logger.info(f"Exporting {len(entries)} entries of {schema.uid}")

        return self.to_csv([self.flatten_entry(entry, schema) for entry in entries])

    def flatten_entry(self, entry: Mapping[str, Any], schema: SchemaDefinition) -> Dict[str, Any]:
        """Appiattisce component e relazioni di una singola entità"""
        flattened = dict(entry)

        for field_name, attribute in schema.attributes.items():
            value = entry.get(field_name)

            if attribute.type == AttributeType.COMPONENT and value:
                flattened.pop(field_name, None)
                if isinstance(value, list):
                    for index, component in enumerate(value, start=1):
                        if isinstance(component, dict):
                            self._flatten_component(flattened, f"{field_name}.{index}", component)
                elif isinstance(value, dict):
                    self._flatten_component(flattened, field_name, value)

            elif attribute.type == AttributeType.RELATION:
                # Anche una relazione vuota o non popolata non esce come colonna grezza
                flattened.pop(field_name, None)
                if not value:
                    continue
                target_schema = self.schema_registry.get_content_type(attribute.target) if attribute.target else None
                first_field = target_schema.first_attribute_name() if target_schema is not None else None
                if first_field is None:
                    continue

                if isinstance(value, list):
                    labels = [
                        format_cell(self._relation_label(item, first_field))
                        for item in value
                        if isinstance(item, dict)
                    ]
                    flattened[f"{field_name}.{first_field}"] = ', '.join(labels)
                elif isinstance(value, dict):
                    flattened[f"{field_name}.{first_field}"] = self._relation_label(value, first_field)

        for timestamp_field in TIMESTAMP_FIELDS:
            flattened.pop(timestamp_field, None)

        return flattened

    @staticmethod
    def _flatten_component(flattened: Dict[str, Any], prefix: str, component: Mapping[str, Any]) -> None:
        for key, value in component.items():
            if key in COMPONENT_INTERNAL_KEYS or value is None or isinstance(value, (dict, list)):
                continue
            flattened[f"{prefix}.{key}"] = value

    @staticmethod
    def _relation_label(item: Mapping[str, Any], first_field: str) -> Any:
        for key in (first_field,) + RELATION_LABEL_FALLBACKS:
            if is_present(item.get(key)):
                return item[key]
        return None

    @staticmethod
    def to_csv(rows: List[Dict[str, Any]]) -> str:
        """
        Serializza le righe in CSV.

        Colonne: unione delle chiavi in ordine di prima apparizione, escluse le
        chiavi interne ("__") e quelle con valori oggetto/lista.
        """
        if not rows:
            return ''

        headers: List[str] = []
        excluded = set()
        for row in rows:
            for key, value in row.items():
                if key.startswith(INTERNAL_PREFIX) or isinstance(value, (dict, list)):
                    excluded.add(key)
                elif key not in headers:
                    headers.append(key)
        headers = [header for header in headers if header not in excluded]

        output = io.StringIO()
        writer = csv.writer(output, lineterminator='\n', quoting=csv.QUOTE_MINIMAL)
        writer.writerow(headers)
        for row in rows:
            writer.writerow([format_cell(row.get(header)) for header in headers])

        return output.getvalue().rstrip('\n')
