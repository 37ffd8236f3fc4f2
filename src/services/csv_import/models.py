"""
Data models for CSV Import System.

Dataclasses carried between the pipeline stages (header mapping, validation,
relation/component resolution, persistence, media matching).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Callable


@dataclass(frozen=True)
class HeaderMappingEntry:
    """
    Mapping di una colonna CSV verso il campo di destinazione.

    Attributes:
        header: Nome colonna CSV originale
        field: Campo di destinazione (il primo segmento per le colonne dot-notation)
        is_valid: Se la colonna corrisponde a un attributo dello schema
        is_dotted: Se la colonna usa la dot-notation
        relation_field: Campo di ricerca sullo schema target (relation.field)
        component_field: Sotto-percorso nel component (component.field[.field])
        component_uid: Uid dello schema del component
    """
    header: str
    field: str
    is_valid: bool
    is_dotted: bool = False
    relation_field: Optional[str] = None
    component_field: Optional[str] = None
    component_uid: Optional[str] = None

    @property
    def is_component(self) -> bool:
        return self.component_field is not None

    @property
    def is_relation(self) -> bool:
        return self.relation_field is not None


@dataclass(frozen=True)
class RelationCapture:
    """Valore grezzo catturato da una colonna relation.field"""
    relation_field: str
    value: str


@dataclass
class ValidatedRow:
    """
    Riga validata e convertita.

    I side-channel (relation_captures, component_captures) vivono accanto ai
    dati della riga e vengono consumati da RelationResolver e ComponentProcessor.
    """
    row_number: int
    data: Dict[str, Any] = field(default_factory=dict)
    relation_captures: Dict[str, RelationCapture] = field(default_factory=dict)
    component_captures: Dict[str, Dict[str, str]] = field(default_factory=dict)
    diagnostics: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class InvalidRow:
    """Riga scartata in validazione con la sua forma originale"""
    row_number: int
    original: Dict[str, Any]
    errors: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row_number,
            "original_row": self.original,
            "errors": list(self.errors)
        }


@dataclass
class ValidationOutcome:
    """
    Risultato validazione CSV.

    Attributes:
        errors: Errori a livello file seguiti dagli errori di riga
        warnings: Warning a livello file
        valid_data: Righe senza errori
        invalid_rows: Righe con almeno un errore
    """
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    valid_data: List[ValidatedRow] = field(default_factory=list)
    invalid_rows: List[InvalidRow] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "valid_rows": len(self.valid_data),
            "invalid_rows": [row.to_dict() for row in self.invalid_rows]
        }


@dataclass(frozen=True)
class RowFailure:
    """Errore di persistenza su una riga"""
    row: Dict[str, Any]
    error: str


@dataclass
class ImportOutcome:
    """
    Risultato import, costruito incrementalmente e mai annullato.

    Attributes:
        created: Entità create
        updated: Entità aggiornate (upsert)
        errors: Errori per riga, in ordine di input
    """
    created: int = 0
    updated: int = 0
    errors: List[RowFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.updated + len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        """Converte in dizionario per risposta API"""
        return {
            "created": self.created,
            "updated": self.updated,
            "errors": [
                {"row": failure.row, "error": failure.error}
                for failure in self.errors[:100]  # Limita a 100 per response size
            ],
            "errors_count": len(self.errors)
        }


@dataclass
class ImportOptions:
    upsert: bool = False
    batch_size: int = 100
    upsert_field: str = "id"
    media_field_mappings: List[MediaFieldMapping] = field(default_factory=list)


@dataclass(frozen=True)
class UploadedFile:
    id: Any
    name: str
    url: Optional[str]
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "url": self.url, "size": self.size}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UploadedFile:
        return cls(
            id=data["id"],
            name=data.get("name") or data.get("originalName") or "",
            url=data.get("url"),
            size=int(data.get("size") or 0)
        )


@dataclass
class MediaFieldMapping:
    """Associazione tra un campo media e i file caricati dall'archivio"""
    field: str
    uploaded_files: List[UploadedFile] = field(default_factory=list)
    match_field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "uploaded_files": [uploaded.to_dict() for uploaded in self.uploaded_files],
            "match_field": self.match_field
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MediaFieldMapping:
        files = data.get("uploaded_files", data.get("uploadedFiles", []))
        return cls(
            field=data["field"],
            uploaded_files=[UploadedFile.from_dict(item) for item in files],
            match_field=data.get("match_field", data.get("matchField"))
        )


@dataclass(frozen=True)
class ArchiveEntry:
    """Voce di un archivio: percorso, flag directory e lettore del contenuto"""
    path: str
    is_directory: bool
    get_bytes: Callable[[], bytes] = field(repr=False, compare=False)

    @property
    def file_name(self) -> str:
        return self.path.rstrip("/").split("/")[-1]
