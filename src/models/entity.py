from sqlalchemy import Integer, Column, String, JSON, DateTime, func

from src.database import Base


class Entity(Base):
    """Record generico di un content type: i valori degli attributi vivono nella colonna JSON"""
    __tablename__ = "entities"

    id = Column(Integer, primary_key=True, index=True)
    content_type = Column(String(200), index=True, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
