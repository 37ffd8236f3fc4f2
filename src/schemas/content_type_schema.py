from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class AttributeType(str, Enum):
    STRING = "string"
    TEXT = "text"
    RICHTEXT = "richtext"
    UID = "uid"
    PASSWORD = "password"
    INTEGER = "integer"
    BIGINTEGER = "biginteger"
    DECIMAL = "decimal"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    EMAIL = "email"
    ENUMERATION = "enumeration"
    RELATION = "relation"
    COMPONENT = "component"
    MEDIA = "media"
    JSON = "json"
    OTHER = "other"


INTEGER_TYPES = {AttributeType.INTEGER, AttributeType.BIGINTEGER}
DECIMAL_TYPES = {AttributeType.DECIMAL, AttributeType.FLOAT}
DATE_TYPES = {AttributeType.DATE, AttributeType.DATETIME, AttributeType.TIME}


class RelationKind(str, Enum):
    ONE_TO_ONE = "oneToOne"
    MANY_TO_ONE = "manyToOne"
    ONE_TO_MANY = "oneToMany"
    MANY_TO_MANY = "manyToMany"

    @property
    def is_to_many(self) -> bool:
        return self in (RelationKind.ONE_TO_MANY, RelationKind.MANY_TO_MANY)


class AttributeDescriptor(BaseModel):
    """
        Schema di un singolo attributo di un content type o component.

        Attributes:
        - type (AttributeType): tipo dichiarato; i tipi non riconosciuti diventano "other".
        - required / unique (bool): vincoli dichiarati.
        - default (Any): valore di default opzionale.
        - enum (List[str]): valori ammessi (solo enumeration).
        - relation (RelationKind) / target (str): tipo e uid di destinazione (solo relation).
        - component (str) / repeatable (bool): uid dello schema annidato (solo component).
        - multiple (bool): media multipli (solo media).
    """
    type: AttributeType = AttributeType.OTHER
    required: bool = False
    unique: bool = False
    default: Optional[Any] = None
    enum: Optional[List[str]] = None
    relation: Optional[RelationKind] = None
    target: Optional[str] = None
    component: Optional[str] = None
    repeatable: bool = False
    multiple: bool = False

    model_config = {"frozen": True, "extra": "ignore"}

    @field_validator("type", mode="before")
    @classmethod
    def _unknown_type_is_other(cls, value: Any) -> Any:
        if isinstance(value, AttributeType):
            return value
        try:
            return AttributeType(value)
        except ValueError:
            return AttributeType.OTHER

    @property
    def is_required_without_default(self) -> bool:
        return self.required and self.default is None


class SchemaInfo(BaseModel):
    singular_name: str = Field(..., alias="singularName")
    plural_name: str = Field(..., alias="pluralName")
    display_name: Optional[str] = Field(default=None, alias="displayName")

    model_config = {"frozen": True, "populate_by_name": True}


class SchemaDefinition(BaseModel):
    """
        Definizione di un content type (o di un component) come fornita dal registry.

        L'ordine di dichiarazione degli attributi è significativo: l'export usa
        il primo attributo dichiarato dello schema di destinazione delle relazioni.
    """
    uid: str
    info: SchemaInfo
    attributes: Dict[str, AttributeDescriptor] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def display_name(self) -> str:
        return self.info.display_name or self.info.singular_name

    def first_attribute_name(self) -> Optional[str]:
        return next(iter(self.attributes), None)

    def attributes_of_type(self, attribute_type: AttributeType) -> Dict[str, AttributeDescriptor]:
        return {
            name: attribute
            for name, attribute in self.attributes.items()
            if attribute.type == attribute_type
        }


class ContentTypeResponseSchema(BaseModel):
    uid: str
    singular_name: str
    plural_name: str
    display_name: str
    attributes: Dict[str, AttributeDescriptor]

    @classmethod
    def from_definition(cls, definition: SchemaDefinition) -> "ContentTypeResponseSchema":
        return cls(
            uid=definition.uid,
            singular_name=definition.info.singular_name,
            plural_name=definition.info.plural_name,
            display_name=definition.display_name,
            attributes=dict(definition.attributes),
        )


class ExportRequestSchema(BaseModel):
    filters: Dict[str, Any] = Field(default_factory=dict)
