"""
Interfacce dei collaboratori esterni dell'engine di import (entity store, media store, schema registry)
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Mapping

from src.schemas.content_type_schema import SchemaDefinition


class IEntityStore(ABC):
    """Interface per lo store delle entità persistite"""

    @abstractmethod
    async def create(self, schema_uid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Crea una nuova entità"""
        pass

    @abstractmethod
    async def update(self, schema_uid: str, entity_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        """Aggiorna un'entità esistente"""
        pass

    @abstractmethod
    async def find_many(
        self,
        schema_uid: str,
        filters: Optional[Mapping[str, Any]] = None,
        populate: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Cerca entità con filtri.

        Filtri supportati per campo: valore diretto (match esatto) oppure
        operatori {"$eq": v}, {"$eqi": v} (case-insensitive), {"$containsi": v}.
        """
        pass


class IMediaStore(ABC):
    """Interface per la libreria media"""

    @abstractmethod
    async def upload(self, file_info: Dict[str, Any], content: bytes) -> List[Dict[str, Any]]:
        """Carica un file e ritorna la lista dei file creati ({id, url, ...})"""
        pass


class ISchemaRegistry(ABC):
    """Interface per il registry degli schemi (content types e components)"""

    @abstractmethod
    def get_content_type(self, uid: str) -> Optional[SchemaDefinition]:
        """Ottiene un content type per uid"""
        pass

    @abstractmethod
    def get_component(self, uid: str) -> Optional[SchemaDefinition]:
        """Ottiene lo schema di un component per uid"""
        pass

    @abstractmethod
    def content_types(self) -> List[SchemaDefinition]:
        """Tutti i content type registrati"""
        pass
