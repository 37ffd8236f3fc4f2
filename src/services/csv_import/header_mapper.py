"""
Header Mapper for CSV Import System.

Maps CSV column names onto schema attributes, including dot-notation
columns for relations (``relation.field``) and components
(``component.field`` / ``component.relation.field``).
"""
from __future__ import annotations

from typing import Dict, Iterable, Mapping

from src.schemas.content_type_schema import AttributeDescriptor, AttributeType

from .models import HeaderMappingEntry


class HeaderMapper:
    """
    Stateless mapper header CSV -> campi schema.

    Non solleva mai eccezioni: le colonne non riconosciute sono marcate
    is_valid=False e il chiamante le riporta come warning.
    """

    @staticmethod
    def map(
        headers: Iterable[str],
        attributes: Mapping[str, AttributeDescriptor]
    ) -> Dict[str, HeaderMappingEntry]:
        """
        Crea il mapping per ogni header.

        Args:
            headers: Nomi colonne CSV
            attributes: Attributi dello schema di destinazione

        Returns:
            Dizionario header -> HeaderMappingEntry
        """
        return {header: HeaderMapper.map_header(header, attributes) for header in headers}

    @staticmethod
    def map_header(header: str, attributes: Mapping[str, AttributeDescriptor]) -> HeaderMappingEntry:
        if '.' not in header:
            return HeaderMappingEntry(
                header=header,
                field=header,
                is_valid=header in attributes
            )

        field_name, _, rest = header.partition('.')
        attribute = attributes.get(field_name)
        invalid = HeaderMappingEntry(header=header, field=header, is_valid=False, is_dotted=True)

        if attribute is None or not rest:
            return invalid

        if attribute.type == AttributeType.RELATION:
            # relation.field: un solo segmento dopo il nome della relazione
            if '.' in rest:
                return invalid
            return HeaderMappingEntry(
                header=header,
                field=field_name,
                is_valid=True,
                is_dotted=True,
                relation_field=rest
            )

        if attribute.type == AttributeType.COMPONENT:
            return HeaderMappingEntry(
                header=header,
                field=field_name,
                is_valid=True,
                is_dotted=True,
                component_field=rest,
                component_uid=attribute.component
            )

        return invalid
