"""
CSV Validator for Import System.

Validates parsed CSV rows against a content type schema: required columns,
unknown columns, relation lookup-field uniqueness and per-cell type coercion.
Follows Single Responsibility Principle.
"""
from __future__ import annotations

import logging
from typing import List, Dict, Any, Mapping, Tuple

from src.core.interfaces import ISchemaRegistry
from src.schemas.content_type_schema import AttributeDescriptor, AttributeType, SchemaDefinition

from .header_mapper import HeaderMapper
from .models import (
    HeaderMappingEntry,
    InvalidRow,
    RelationCapture,
    ValidatedRow,
    ValidationOutcome,
)
from .value_coercer import CoercionError, coerce_value, is_present

logger = logging.getLogger(__name__)


class CSVValidator:
    """
    Validatore righe CSV rispetto allo schema del content type.

    Valida:
    - Campi obbligatori (a livello header, fail fast)
    - Colonne sconosciute (warning)
    - Unicità dei campi usati in dot-notation sulle relazioni
    - Tipi dei valori per ogni riga
    """

    def __init__(self, schema_registry: ISchemaRegistry):
        self.schema_registry = schema_registry

    async def validate(
        self,
        rows: List[Dict[str, Any]],
        schema: SchemaDefinition
    ) -> ValidationOutcome:
        """
        Valida le righe CSV.

        Args:
            rows: Righe prodotte dal parser (header -> valore)
            schema: Schema del content type di destinazione

        Returns:
            ValidationOutcome con errori, warning, righe valide e invalide
        """
        outcome = ValidationOutcome()
        attributes = schema.attributes

        if not rows:
            outcome.errors.append('CSV file is empty or invalid')
            return outcome

        csv_headers = list(rows[0].keys())
        header_mapping = HeaderMapper.map(csv_headers, attributes)

        # 1. Campi obbligatori senza default (considerando la dot-notation)
        missing_required = self._missing_required_fields(header_mapping, attributes)
        if missing_required:
            outcome.errors.append(f"Missing required fields: {', '.join(missing_required)}")

        # 2. Colonne sconosciute (le colonne dot-notation non sono riportate)
        unknown_fields = [
            header for header, mapping in header_mapping.items()
            if not mapping.is_valid and not mapping.is_dotted
        ]
        if unknown_fields:
            outcome.warnings.append(f"Unknown fields (will be ignored): {', '.join(unknown_fields)}")

        if missing_required:
            # Fail fast: nessuna riga processata
            return outcome

        # 3. Unicità dei campi target nelle relation.field
        uniqueness_errors, uniqueness_warnings = self.validate_relation_field_uniqueness(
            header_mapping, attributes
        )
        outcome.errors.extend(uniqueness_errors)
        outcome.warnings.extend(uniqueness_warnings)

        # 4. Validazione per riga
        row_errors: List[str] = []
        for row_number, row in enumerate(rows, start=1):
            validated, errors = self._validate_row(row_number, row, header_mapping, attributes)
            if errors:
                row_errors.extend(errors)
                outcome.invalid_rows.append(InvalidRow(row_number=row_number, original=dict(row), errors=errors))
            else:
                outcome.valid_data.append(validated)

        outcome.errors.extend(row_errors)

        logger.info(
            f"Validated {len(rows)} rows for {schema.uid}: "
            f"{len(outcome.valid_data)} valid, {len(outcome.invalid_rows)} invalid"
        )
        return outcome

    @staticmethod
    def _missing_required_fields(
        header_mapping: Mapping[str, HeaderMappingEntry],
        attributes: Mapping[str, AttributeDescriptor]
    ) -> List[str]:
        mapped_fields = {mapping.field for mapping in header_mapping.values() if mapping.is_valid}
        return [
            name for name, attribute in attributes.items()
            if attribute.is_required_without_default and name not in mapped_fields
        ]

    def validate_relation_field_uniqueness(
        self,
        header_mapping: Mapping[str, HeaderMappingEntry],
        attributes: Mapping[str, AttributeDescriptor]
    ) -> Tuple[List[str], List[str]]:
        """
        Verifica che i campi usati in relation.field siano unique sullo schema target.

        Returns:
            Tuple (errors, warnings)
        """
        errors: List[str] = []
        warnings: List[str] = []

        relation_fields: Dict[str, HeaderMappingEntry] = {}
        for mapping in header_mapping.values():
            if mapping.is_valid and mapping.is_relation:
                relation_fields[mapping.field] = mapping

        for field_name, mapping in relation_fields.items():
            target_uid = attributes[field_name].target
            search_field = mapping.relation_field

            if not target_uid or not search_field:
                continue

            try:
                target_schema = self.schema_registry.get_content_type(target_uid)
                if target_schema is None:
                    warnings.append(
                        f'Target content type "{target_uid}" not found for relation field "{field_name}"'
                    )
                    continue

                target_attribute = target_schema.attributes.get(search_field)
                if target_attribute is None:
                    errors.append(
                        f'Target field "{search_field}" not found in content type "{target_uid}" '
                        f'for relation field "{field_name}.{search_field}"'
                    )
                    continue

                if not target_attribute.unique:
                    errors.append(
                        f'Field "{search_field}" in content type "{target_uid}" must be set as unique '
                        f'for relation field "{field_name}.{search_field}"'
                    )
            except Exception as e:
                logger.error(f"Error validating relation field schema {field_name}: {e}")
                warnings.append(f'Could not validate relation field schema "{field_name}": {e}')

        return errors, warnings

    @staticmethod
    def _validate_row(
        row_number: int,
        row: Mapping[str, Any],
        header_mapping: Mapping[str, HeaderMappingEntry],
        attributes: Mapping[str, AttributeDescriptor]
    ) -> Tuple[ValidatedRow, List[str]]:
        validated = ValidatedRow(row_number=row_number)
        errors: List[str] = []

        for csv_header, value in row.items():
            mapping = header_mapping.get(csv_header)
            if mapping is None:
                # Righe irregolari possono avere chiavi non presenti nella prima riga
                mapping = HeaderMapper.map_header(csv_header, attributes)
            if not mapping.is_valid:
                continue

            field_name = mapping.field
            attribute = attributes[field_name]

            if mapping.is_component:
                captures = validated.component_captures.setdefault(field_name, {})
                captures[mapping.component_field] = '' if value is None else str(value)
                continue

            if mapping.is_relation:
                if is_present(value):
                    validated.relation_captures[field_name] = RelationCapture(
                        relation_field=mapping.relation_field,
                        value=str(value)
                    )
                continue

            if is_present(value):
                if attribute.type == AttributeType.COMPONENT:
                    # I component arrivano solo tramite dot-notation
                    continue
                try:
                    validated.data[field_name] = coerce_value(str(value), attribute, field_name)
                except CoercionError as e:
                    errors.append(f"Row {row_number}: {e.message}")
            elif attribute.is_required_without_default:
                errors.append(f'Row {row_number}: Required field "{field_name}" is missing')

        return validated, errors
