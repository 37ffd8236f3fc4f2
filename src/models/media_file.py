from sqlalchemy import Integer, Column, String, DateTime, func

from src.database import Base


class MediaFile(Base):
    __tablename__ = "media_files"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(500), nullable=False)
    alternative_text = Column(String(500))
    caption = Column(String(500))
    mime = Column(String(200))
    size = Column(Integer, default=0)
    path = Column(String(1000), nullable=False)
    url = Column(String(1000), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
