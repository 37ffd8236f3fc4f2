"""
File-system implementation of the media store.
"""
import logging
import re
import uuid
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from src.core.exceptions import ErrorCode, InfrastructureException
from src.core.interfaces import IMediaStore
from src.models.media_file import MediaFile

logger = logging.getLogger(__name__)


class FileSystemMediaStore(IMediaStore):
    """
    Libreria media su disco.

    I file sono salvati sotto media_root con un prefisso univoco; i metadati
    sono registrati nella tabella media_files.
    """

    def __init__(self, session: Session, media_root: str = "media/uploads", base_url: str = "/media/uploads"):
        self._session = session
        self.media_root = Path(media_root)
        self.base_url = base_url.rstrip("/")

    async def upload(self, file_info: Dict[str, Any], content: bytes) -> List[Dict[str, Any]]:
        """
        Salva un file e ne registra i metadati.

        Args:
            file_info: name, alternativeText, caption, mime
            content: Contenuto binario

        Returns:
            Lista con il file creato ({id, name, url, size, mime})
        """
        name = file_info.get("name") or "file"
        stored_name = f"{uuid.uuid4().hex}_{self._safe_name(name)}"
        file_path = self.media_root / stored_name

        try:
            self.media_root.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
        except OSError as e:
            raise InfrastructureException(
                f"Storage error saving {name}: {str(e)}",
                ErrorCode.STORAGE_ERROR,
                {"name": name}
            )

        try:
            media_file = MediaFile(
                name=name,
                alternative_text=file_info.get("alternativeText"),
                caption=file_info.get("caption"),
                mime=file_info.get("mime"),
                size=len(content),
                path=str(file_path),
                url=f"{self.base_url}/{stored_name}"
            )
            self._session.add(media_file)
            self._session.commit()
            self._session.refresh(media_file)
        except Exception as e:
            self._session.rollback()
            file_path.unlink(missing_ok=True)
            raise InfrastructureException(f"Database error saving media {name}: {str(e)}")

        logger.debug(f"Stored media file {name} as {file_path}")
        return [{
            "id": media_file.id,
            "name": media_file.name,
            "url": media_file.url,
            "size": media_file.size,
            "mime": media_file.mime,
        }]

    @staticmethod
    def _safe_name(name: str) -> str:
        return re.sub(r"[^a-zA-Z0-9.-]", "_", name)
