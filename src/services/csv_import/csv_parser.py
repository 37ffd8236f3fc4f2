"""
CSV Parser for Import System.

Turns raw bytes into a list of row mappings keyed by the header line.
Follows Single Responsibility Principle - only parsing logic.
"""
from __future__ import annotations

import csv
import io
import logging
from typing import List, Dict

from src.core.exceptions import ExceptionFactory

logger = logging.getLogger(__name__)


class CSVParser:
    """
    Parser CSV tollerante.

    - La prima riga non vuota è l'header
    - Le virgolette non bilanciate non sollevano eccezioni (parse best-effort)
    - Nessun limite di lunghezza per cella oltre alla dimensione del file
    - File vuoto o con solo header -> lista vuota

    Stateless parser - tutti i metodi sono statici.
    """

    @staticmethod
    def decode(file_content: bytes) -> str:
        """Decodifica bytes in stringa (UTF-8 con BOM, fallback Latin-1)"""
        try:
            return file_content.decode('utf-8-sig')  # utf-8-sig rimuove BOM
        except UnicodeDecodeError:
            return file_content.decode('latin-1')

    @staticmethod
    def parse(file_content: bytes, delimiter: str = ',') -> List[Dict[str, str]]:
        """
        Parse CSV file.

        Args:
            file_content: Contenuto file CSV in bytes
            delimiter: Separatore di campo (default: virgola)

        Returns:
            Lista di dizionari header -> valore, nell'ordine del file

        Raises:
            ValidationException: Se il modulo csv non riesce a leggere una riga
        """
        content = CSVParser.decode(file_content)
        if not content.strip():
            return []

        # Una singola cella può occupare l'intero file
        csv.field_size_limit(max(csv.field_size_limit(), len(content)))
        reader = csv.reader(io.StringIO(content, newline=''), delimiter=delimiter, strict=False)

        headers: List[str] = []
        rows: List[Dict[str, str]] = []
        try:
            for values in reader:
                # Skip righe vuote
                if not any(value.strip() for value in values):
                    continue

                if not headers:
                    headers = [value.strip() for value in values]
                    continue

                # Le colonne mancanti diventano stringa vuota, quelle in eccesso sono scartate
                padded = list(values[:len(headers)]) + [''] * (len(headers) - len(values))
                rows.append({
                    header: value.strip()
                    for header, value in zip(headers, padded)
                    if header
                })
        except csv.Error as e:
            logger.warning(f"CSV parsing failed at line {reader.line_num}: {e}")
            raise ExceptionFactory.csv_parse_error(reader.line_num, str(e)) from e

        return rows

    @staticmethod
    def headers(rows: List[Dict[str, str]]) -> List[str]:
        """Headers della prima riga dati"""
        return list(rows[0].keys()) if rows else []
