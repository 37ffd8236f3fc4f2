"""
Media Archive Matcher for CSV Import System.

Uploads the files contained in a zip archive to the media store and
correlates them to CSV rows through filename patterns.

Archive layouts supported:
- Structured: a folder named after a media field (``reports/R-001.pdf``)
- Unstructured: any folder; files are distributed to the media fields
  through a keyword table on the file name
"""
from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Optional, Tuple

from src.core.interfaces import IMediaStore
from src.schemas.content_type_schema import AttributeType, SchemaDefinition

from .archive_reader import ZipArchiveReader
from .models import ArchiveEntry, MediaFieldMapping, UploadedFile
from .value_coercer import is_present

logger = logging.getLogger(__name__)


MIME_TYPES = {
    '.pdf': 'application/pdf',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.doc': 'application/msword',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    '.xls': 'application/vnd.ms-excel',
    '.xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    '.txt': 'text/plain',
    '.mp4': 'video/mp4',
    '.mp3': 'audio/mpeg',
}

DEFAULT_MIME_TYPE = 'application/octet-stream'

# Campo media (sottostringa del nome) -> parole chiave nel nome file
FIELD_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'reports': ('report', 'rpt', 'analysis', 'summary', 'result'),
    'lab_docs': ('lab', 'test', 'analysis', 'sample'),
    'referee_result': ('referee', 'ref', 'audit', 'verification', 'check'),
    'payment_docs': ('payment', 'pay', 'invoice', 'bill', 'receipt', 'financial'),
    'challan_docs': ('challan', 'delivery', 'transport', 'dispatch', 'shipping'),
}


def get_mime_type(filename: str) -> str:
    """MIME type dall'estensione del file"""
    _, extension = os.path.splitext(filename)
    return MIME_TYPES.get(extension.lower(), DEFAULT_MIME_TYPE)


def is_system_entry(path: str) -> bool:
    """File di metadati di piattaforma (resource fork macOS, dot-file)"""
    if '__MACOSX' in path:
        return True
    segments = path.split('/')
    if any(segment.startswith('._') for segment in segments):
        return True
    return segments[-1].startswith('.')


class MediaArchiveMatcher:
    """
    Upload e matching dei file media contenuti in archivi zip.

    Gli errori di upload dei singoli file sono loggati e il file escluso dal
    risultato; solo un archivio illeggibile interrompe l'operazione.
    """

    def __init__(self, media_store: IMediaStore):
        self.media_store = media_store

    async def extract_and_upload(self, archive_bytes: bytes, media_field: str) -> List[UploadedFile]:
        """
        Carica ogni file dell'archivio nel media store.

        Args:
            archive_bytes: Contenuto zip
            media_field: Campo media di destinazione (usato nella caption)

        Returns:
            Lista dei file caricati con successo
        """
        uploaded_files: List[UploadedFile] = []

        with ZipArchiveReader(archive_bytes) as reader:
            entries = reader.entries()
            logger.info(f"Found {len(entries)} entries in zip file for field '{media_field}'")

            for entry in entries:
                if entry.is_directory:
                    continue
                uploaded = await self._upload_entry(
                    entry,
                    name=entry.path,
                    caption=f"Extracted from zip for {media_field} field"
                )
                if uploaded is not None:
                    uploaded_files.append(uploaded)

        logger.info(f"Upload complete. Total files uploaded: {len(uploaded_files)}")
        return uploaded_files

    async def extract_and_map(
        self,
        archive_bytes: bytes,
        schema: SchemaDefinition,
        match_field: Optional[str]
    ) -> List[MediaFieldMapping]:
        """
        Carica i file dell'archivio e li associa ai campi media dello schema.

        Args:
            archive_bytes: Contenuto zip
            schema: Content type di destinazione (i campi media sono i candidati)
            match_field: Campo CSV usato per correlare i file alle righe

        Returns:
            Una mapping per ogni campo media con almeno un file caricato
        """
        media_fields = list(schema.attributes_of_type(AttributeType.MEDIA).keys())
        logger.info(f"Processing media zip for {schema.uid}, media fields: {media_fields}")

        with ZipArchiveReader(archive_bytes) as reader:
            field_buckets, loose_entries = self._bucket_entries(reader.entries(), media_fields)

            if not field_buckets and loose_entries:
                logger.info(f"No structured folders found. Distributing {len(loose_entries)} files by keyword")
                for field_name in media_fields:
                    field_buckets[field_name] = self.filter_files_for_media_field(loose_entries, field_name)

            # Ogni voce è caricata una sola volta, anche se presente in più campi
            unique_entries: Dict[Tuple[str, str], ArchiveEntry] = {}
            for entries in field_buckets.values():
                for entry in entries:
                    unique_entries.setdefault((entry.file_name, entry.path), entry)

            logger.info(f"Uploading {len(unique_entries)} unique files to media library")
            upload_cache: Dict[Tuple[str, str], UploadedFile] = {}
            for key, entry in unique_entries.items():
                uploaded = await self._upload_entry(entry, name=entry.file_name, caption="Media file from ZIP upload")
                if uploaded is not None:
                    upload_cache[key] = uploaded

        mappings = []
        for field_name, entries in field_buckets.items():
            uploaded_files = [
                upload_cache[(entry.file_name, entry.path)]
                for entry in entries
                if (entry.file_name, entry.path) in upload_cache
            ]
            if uploaded_files:
                mappings.append(MediaFieldMapping(
                    field=field_name,
                    uploaded_files=uploaded_files,
                    match_field=match_field
                ))
                logger.info(f"Created mapping for field '{field_name}' with {len(uploaded_files)} files")

        return mappings

    @staticmethod
    def _bucket_entries(
        entries: List[ArchiveEntry],
        media_fields: List[str]
    ) -> Tuple[Dict[str, List[ArchiveEntry]], List[ArchiveEntry]]:
        field_buckets: Dict[str, List[ArchiveEntry]] = {}
        loose_entries: List[ArchiveEntry] = []

        for entry in entries:
            if entry.is_directory or is_system_entry(entry.path):
                continue

            folders = entry.path.split('/')[:-1]
            matched_field = next((folder for folder in folders if folder in media_fields), None)
            if matched_field:
                field_buckets.setdefault(matched_field, []).append(entry)
            else:
                loose_entries.append(entry)

        return field_buckets, loose_entries

    @staticmethod
    def filter_files_for_media_field(entries: List[ArchiveEntry], media_field: str) -> List[ArchiveEntry]:
        """
        Filtra i file per un campo media tramite la tabella delle parole chiave.

        I campi senza regola nella tabella non ricevono file.
        """
        keywords: Tuple[str, ...] = ()
        for field_key, field_keywords in FIELD_KEYWORDS.items():
            if field_key in media_field:
                keywords = field_keywords
                break

        matched = [
            entry for entry in entries
            if any(keyword in entry.file_name.lower() for keyword in keywords)
        ]
        logger.debug(f"Field '{media_field}' keywords {list(keywords)}: matched {len(matched)}/{len(entries)} files")
        return matched

    async def _upload_entry(self, entry: ArchiveEntry, name: str, caption: str) -> Optional[UploadedFile]:
        try:
            content = entry.get_bytes()
            file_info = {
                "name": name,
                "alternativeText": name,
                "caption": caption,
                "mime": get_mime_type(name),
                "size": len(content),
            }
            result = await self.media_store.upload(file_info, content)
            if not result:
                logger.error(f"Upload failed for {name}: no file returned")
                return None

            stored = result[0]
            logger.info(f"Successfully uploaded: {name} with ID: {stored['id']}")
            return UploadedFile(id=stored["id"], name=name, url=stored.get("url"), size=len(content))
        except Exception as e:
            logger.error(f"Error processing file {entry.path}: {e}")
            return None

    @staticmethod
    def process_media_fields(
        row: Dict[str, Any],
        mappings: List[MediaFieldMapping],
        match_field: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Associa alla riga i file il cui nome corrisponde al valore del match field.

        Pattern (case-insensitive, in OR):
        1. Match esatto: "<valore>.<ext>"
        2. Suffisso numerato: "<valore>_<cifre>.*"
        3. Prefisso: "<valore>*"

        Il campo media è impostato alla lista degli id ordinati per nome file;
        senza match il campo non viene toccato.

        Args:
            row: Dati della riga (modificati in place)
            mappings: Mapping campo media -> file caricati
            match_field: Campo della riga da confrontare con i nomi file

        Returns:
            La riga stessa
        """
        for mapping in mappings:
            match_value = row.get(match_field) if match_field else None
            if not is_present(match_value) and mapping.match_field:
                match_value = row.get(mapping.match_field)
            if not is_present(match_value) or not mapping.uploaded_files:
                continue

            matching = [
                uploaded for uploaded in mapping.uploaded_files
                if MediaArchiveMatcher.file_matches(uploaded.name, str(match_value))
            ]
            if matching:
                matching.sort(key=lambda uploaded: uploaded.name.lower())
                row[mapping.field] = [uploaded.id for uploaded in matching]
                logger.debug(
                    f"Mapped {len(matching)} files to field '{mapping.field}' for value '{match_value}'"
                )

        return row

    @staticmethod
    def file_matches(file_name: str, match_value: str) -> bool:
        file_name = file_name.lower()
        match_value = match_value.lower()
        extension = file_name.split('.')[-1]

        exact_match = file_name == f"{match_value}.{extension}"
        numbered_match = re.match(rf"^{re.escape(match_value)}_\d+\.", file_name) is not None
        prefix_match = file_name.startswith(match_value)
        return exact_match or numbered_match or prefix_match
