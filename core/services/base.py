"""
Base Service with Standardized Response Format
"""
from typing import Any, Optional, Dict
from django.db import DatabaseError
from django.core.exceptions import ValidationError, PermissionDenied, ObjectDoesNotExist
import logging

logger = logging.getLogger(__name__)


class ServiceResponse:
    """Standardized service response object"""

    INVALID = 'invalid'
    NOT_FOUND = 'not_found'
    FORBIDDEN = 'forbidden'
    CONFLICT = 'conflict'
    SERVER_ERROR = 'server_error'

    def __init__(self, success: bool, data: Any = None, message: str = "",
                 errors: Dict = None, code: Optional[str] = None):
        self.success = success
        self.data = data
        self.message = message
        self.errors = errors or {}
        self.code = code if code or success else self.INVALID

    def __bool__(self):
        return self.success

    def __repr__(self):
        state = 'ok' if self.success else self.code
        return f"<ServiceResponse {state}: {self.message}>"


class BaseService:
    """Base service with consistent patterns"""

    @staticmethod
    def success(data: Any = None, message: str = "") -> ServiceResponse:
        """Return success response"""
        return ServiceResponse(success=True, data=data, message=message)

    @staticmethod
    def error(message: str, data: Any = None, errors: Dict = None,
              code: str = ServiceResponse.INVALID) -> ServiceResponse:
        """Return error response"""
        return ServiceResponse(success=False, data=data, message=message, errors=errors, code=code)

    @classmethod
    def not_found(cls, message: str) -> ServiceResponse:
        return cls.error(message, code=ServiceResponse.NOT_FOUND)

    @classmethod
    def forbidden(cls, message: str) -> ServiceResponse:
        return cls.error(message, code=ServiceResponse.FORBIDDEN)

    @classmethod
    def handle_exception(cls, exception: Exception, context: str = "") -> ServiceResponse:
        """Standardized exception handling"""
        error_context = f"{context}: " if context else ""

        if isinstance(exception, ValidationError):
            message = '; '.join(exception.messages)
            logger.warning(f"{error_context}Validation error - {message}")
            errors = exception.message_dict if hasattr(exception, 'error_dict') else {}
            return cls.error(message, errors=errors)

        if isinstance(exception, ObjectDoesNotExist):
            logger.info(f"{error_context}Not found - {exception}")
            return cls.not_found(str(exception) or "Not found")

        if isinstance(exception, PermissionDenied):
            return cls.forbidden(str(exception) or "Permission denied")

        if isinstance(exception, DatabaseError):
            error_msg = f"{error_context}Database error - {str(exception)}"
            logger.error(error_msg, exc_info=True)
        else:
            error_msg = f"{error_context}Unexpected error - {str(exception)}"
            logger.exception(error_msg)

        return cls.error(error_msg, code=ServiceResponse.SERVER_ERROR)

    @staticmethod
    def validate_required_fields(data: Dict, required_fields: list) -> Optional[str]:
        """Validate required fields in data dictionary"""
        missing_fields = [field for field in required_fields if data.get(field) in (None, '')]
        if missing_fields:
            return f"Missing required fields: {', '.join(missing_fields)}"
        return None
