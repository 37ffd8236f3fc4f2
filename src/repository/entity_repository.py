"""
SQLAlchemy implementation of the entity store.

Every content type shares the ``entities`` table; attribute values are kept
in a JSON column and filters are evaluated in Python on the decoded values.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from src.core.exceptions import InfrastructureException, NotFoundException
from src.core.interfaces import IEntityStore, ISchemaRegistry
from src.models.entity import Entity
from src.schemas.content_type_schema import AttributeType

logger = logging.getLogger(__name__)

RESERVED_KEYS = ('id', 'createdAt', 'updatedAt')


def _as_text(value: Any) -> str:
    return '' if value is None else str(value)


def _equals(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    # I valori CSV arrivano come stringhe, quelli salvati possono essere numerici
    return actual is not None and expected is not None and _as_text(actual) == _as_text(expected)


def matches_filters(entity: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    """
    Verifica un'entità contro i filtri dello store.

    Per campo: valore diretto (match esatto) oppure {"$eq"|"$eqi"|"$containsi": valore}.

    Raises:
        ValueError: Per operatori non supportati
    """
    for field_name, condition in (filters or {}).items():
        actual = entity.get(field_name)

        if not isinstance(condition, dict):
            if not _equals(actual, condition):
                return False
            continue

        for operator, expected in condition.items():
            if operator == '$eq':
                matched = _equals(actual, expected)
            elif operator == '$eqi':
                matched = actual is not None and _as_text(actual).lower() == _as_text(expected).lower()
            elif operator == '$containsi':
                matched = actual is not None and _as_text(expected).lower() in _as_text(actual).lower()
            else:
                raise ValueError(f"Unsupported filter operator: {operator}")
            if not matched:
                return False

    return True


class SqlEntityStore(IEntityStore):
    """Entity store su SQLAlchemy (una riga per entità, valori in JSON)"""

    def __init__(self, session: Session, schema_registry: ISchemaRegistry):
        self._session = session
        self._schema_registry = schema_registry

    async def create(self, schema_uid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            record = Entity(content_type=schema_uid, data=self._clean(data))
            self._session.add(record)
            self._session.commit()
            self._session.refresh(record)
            return self._to_dict(record)
        except Exception as e:
            self._session.rollback()
            raise InfrastructureException(f"Database error creating {schema_uid}: {str(e)}")

    async def update(self, schema_uid: str, entity_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        record = self._get_record(schema_uid, entity_id)
        if record is None:
            raise NotFoundException(schema_uid, entity_id)

        try:
            merged = dict(record.data or {})
            merged.update(self._clean(data))
            # Riassegnazione necessaria per il change tracking della colonna JSON
            record.data = merged
            record.updated_at = datetime.utcnow()
            self._session.commit()
            self._session.refresh(record)
            return self._to_dict(record)
        except Exception as e:
            self._session.rollback()
            raise InfrastructureException(f"Database error updating {schema_uid} {entity_id}: {str(e)}")

    async def find_many(
        self,
        schema_uid: str,
        filters: Optional[Mapping[str, Any]] = None,
        populate: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        try:
            records = self._session.query(Entity).filter(
                Entity.content_type == schema_uid
            ).order_by(Entity.id).all()
        except Exception as e:
            raise InfrastructureException(f"Database error retrieving {schema_uid} list: {str(e)}")

        results = []
        for record in records:
            entity = self._to_dict(record)
            if matches_filters(entity, filters):
                results.append(entity)
                if limit is not None and len(results) >= limit:
                    break

        if populate:
            self._populate(schema_uid, results, populate)
        return results

    def _populate(self, schema_uid: str, entities: List[Dict[str, Any]], populate: List[str]) -> None:
        """Sostituisce gli id delle relazioni con le entità collegate"""
        schema = self._schema_registry.get_content_type(schema_uid)
        if schema is None:
            return

        for field_name in populate:
            attribute = schema.attributes.get(field_name)
            if attribute is None or attribute.type != AttributeType.RELATION or not attribute.target:
                continue

            for entity in entities:
                value = entity.get(field_name)
                if value is None:
                    continue
                if isinstance(value, list):
                    related = [self._get_record(attribute.target, related_id) for related_id in value]
                    entity[field_name] = [self._to_dict(record) for record in related if record is not None]
                else:
                    record = self._get_record(attribute.target, value)
                    entity[field_name] = self._to_dict(record) if record is not None else None

    def _get_record(self, schema_uid: str, entity_id: Any) -> Optional[Entity]:
        try:
            entity_id = int(entity_id)
        except (TypeError, ValueError):
            return None
        return self._session.query(Entity).filter(
            Entity.content_type == schema_uid,
            Entity.id == entity_id
        ).first()

    @staticmethod
    def _clean(data: Mapping[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in data.items() if key not in RESERVED_KEYS}

    @staticmethod
    def _to_dict(record: Entity) -> Dict[str, Any]:
        entity = {"id": record.id}
        entity.update(record.data or {})
        entity["createdAt"] = record.created_at.isoformat() if record.created_at else None
        entity["updatedAt"] = record.updated_at.isoformat() if record.updated_at else None
        return entity
