"""
Entity Importer for CSV Import System.

Persists fully-processed rows one by one through the entity store, with
optional upsert. Rows are independent: a failing row is reported and the
run continues, already-written rows stay written.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from src.core.exceptions import ErrorCode, ValidationException
from src.core.interfaces import IEntityStore

from .media_matcher import MediaArchiveMatcher
from .models import ImportOptions, ImportOutcome, RowFailure, ValidatedRow
from .value_coercer import is_present

logger = logging.getLogger(__name__)


class EntityImporter:
    """
    Importer delle righe verso l'entity store.

    Nessuna transazione globale: ogni riga è creata/aggiornata singolarmente.
    """

    def __init__(self, entity_store: IEntityStore, media_matcher: Optional[MediaArchiveMatcher] = None):
        self.entity_store = entity_store
        self.media_matcher = media_matcher

    async def import_rows(
        self,
        schema_uid: str,
        rows: List[Union[ValidatedRow, Dict[str, Any]]],
        options: Optional[ImportOptions] = None
    ) -> ImportOutcome:
        """
        Importa le righe nell'ordine di input.

        Args:
            schema_uid: Uid del content type
            rows: Righe processate (ValidatedRow o dizionari)
            options: Opzioni di import (upsert, batch_size, upsert_field, media_field_mappings)

        Returns:
            ImportOutcome con created, updated ed errori per riga

        Raises:
            ValidationException: Se batch_size < 1
        """
        options = options or ImportOptions()
        if options.batch_size < 1:
            raise ValidationException(
                "batch_size must be a positive integer",
                ErrorCode.INVALID_IMPORT_OPTIONS,
                {"batch_size": options.batch_size}
            )

        outcome = ImportOutcome()
        items = [row.data if isinstance(row, ValidatedRow) else row for row in rows]

        for start in range(0, len(items), options.batch_size):
            batch = items[start:start + options.batch_size]
            logger.debug(f"Importing batch {start // options.batch_size + 1} ({len(batch)} rows) into {schema_uid}")

            for item in batch:
                item = dict(item)
                try:
                    if options.media_field_mappings and self.media_matcher is not None:
                        self.media_matcher.process_media_fields(
                            item,
                            options.media_field_mappings,
                            options.upsert_field
                        )

                    if options.upsert and is_present(item.get(options.upsert_field)):
                        existing = await self.find_existing_record(
                            schema_uid,
                            options.upsert_field,
                            item[options.upsert_field]
                        )
                        if existing is not None:
                            await self.entity_store.update(schema_uid, existing["id"], item)
                            outcome.updated += 1
                        else:
                            await self.entity_store.create(schema_uid, item)
                            outcome.created += 1
                    else:
                        await self.entity_store.create(schema_uid, item)
                        outcome.created += 1
                except Exception as e:
                    logger.warning(f"Failed to import row into {schema_uid}: {e}")
                    outcome.errors.append(RowFailure(row=item, error=str(e)))

        logger.info(
            f"Import into {schema_uid} completed: {outcome.created} created, "
            f"{outcome.updated} updated, {len(outcome.errors)} errors"
        )
        return outcome

    async def find_existing_record(self, schema_uid: str, field_name: str, value: Any) -> Optional[Dict[str, Any]]:
        """
        Cerca un record esistente per match esatto sul campo di upsert.

        Un errore di lookup è loggato e trattato come "non trovato": la riga
        verrà quindi creata.
        """
        try:
            entities = await self.entity_store.find_many(schema_uid, filters={field_name: value}, limit=1)
        except Exception as e:
            logger.error(f"Error finding existing record by {field_name}: {e}")
            return None
        return entities[0] if entities else None
