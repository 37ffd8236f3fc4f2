"""
Sistema di gestione errori centralizzato per import/export CSV
"""
from abc import ABC
from typing import Optional, Dict, Any
from enum import Enum

class ErrorCode(Enum):
    """Codici errore standardizzati"""
    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CSV_EMPTY = "CSV_EMPTY"
    CSV_TOO_LARGE = "CSV_TOO_LARGE"
    CSV_PARSE_ERROR = "CSV_PARSE_ERROR"
    CSV_VALIDATION_FAILED = "CSV_VALIDATION_FAILED"
    INVALID_ARCHIVE = "INVALID_ARCHIVE"
    INVALID_IMPORT_OPTIONS = "INVALID_IMPORT_OPTIONS"

    # Not found errors
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    CONTENT_TYPE_NOT_FOUND = "CONTENT_TYPE_NOT_FOUND"

    # Infrastructure errors
    DATABASE_ERROR = "DATABASE_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    SCHEMA_REGISTRY_ERROR = "SCHEMA_REGISTRY_ERROR"

class BaseApplicationException(Exception, ABC):
    """Base exception per l'applicazione"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400
    ):
        self.message = message
        self.error_code = error_code.value
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Converte l'eccezione in dizionario per la risposta API"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }

class ValidationException(BaseApplicationException):
    """Errori di validazione"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 400)

class NotFoundException(BaseApplicationException):
    """Entità non trovata"""

    def __init__(
        self,
        entity_type: str,
        entity_id: Any = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.ENTITY_NOT_FOUND
    ):
        if entity_id is not None:
            message = f"{entity_type} \"{entity_id}\" not found"
        else:
            message = f"{entity_type} not found"

        error_details = details or {}
        if entity_id is not None:
            error_details["entity_id"] = entity_id
        error_details["entity_type"] = entity_type

        super().__init__(
            message,
            error_code,
            error_details,
            404
        )

class InfrastructureException(BaseApplicationException):
    """Errori di infrastruttura (database, storage, registry)"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 500)

# Factory per creare eccezioni specifiche
class ExceptionFactory:
    """Factory per creare eccezioni specifiche"""

    @staticmethod
    def content_type_not_found(name: str) -> NotFoundException:
        return NotFoundException(
            "Content type",
            name,
            error_code=ErrorCode.CONTENT_TYPE_NOT_FOUND
        )

    @staticmethod
    def csv_validation_failed(
        errors: list,
        warnings: list,
        invalid_rows: list,
        total_rows: int
    ) -> ValidationException:
        return ValidationException(
            "Validation failed",
            ErrorCode.CSV_VALIDATION_FAILED,
            {
                "errors": errors,
                "warnings": warnings,
                "invalid_rows": invalid_rows,
                "total_rows": total_rows
            }
        )

    @staticmethod
    def csv_too_large(size: int, limit: int) -> ValidationException:
        return ValidationException(
            f"CSV file exceeds the maximum size of {limit} bytes",
            ErrorCode.CSV_TOO_LARGE,
            {"size": size, "limit": limit}
        )

    @staticmethod
    def csv_parse_error(line: int, reason: str) -> ValidationException:
        return ValidationException(
            f"CSV parsing failed at line {line}: {reason}",
            ErrorCode.CSV_PARSE_ERROR,
            {"line": line, "reason": reason}
        )

    @staticmethod
    def invalid_archive(reason: str) -> ValidationException:
        return ValidationException(
            f"Failed to extract zip file: {reason}",
            ErrorCode.INVALID_ARCHIVE,
            {"reason": reason}
        )
