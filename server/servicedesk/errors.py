"""Domain errors raised by the service layer and rendered by the API."""

import enum
from typing import Any, Dict, Iterable, Optional, Type


class ServiceError(Exception):
    """Base class for errors that map onto a client-facing response."""

    status_code = 500
    code = "server_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class Unauthenticated(ServiceError):
    status_code = 401
    code = "unauthenticated"


class PermissionDenied(ServiceError):
    status_code = 403
    code = "permission_denied"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"

    @classmethod
    def for_entity(cls, entity: str, entity_id: Any) -> "NotFound":
        return cls(f"{entity} with ID {entity_id} not found")


class InvalidArgument(ServiceError):
    status_code = 400
    code = "invalid_argument"

    @classmethod
    def not_in(cls, field: str, value: Any, valid: Iterable[Any]) -> "InvalidArgument":
        """Build the error for a value outside a fixed vocabulary."""
        valid_values = [getattr(v, "value", v) for v in valid]
        return cls(
            f"Invalid {field}: {value}",
            {"field": field, "valid_values": valid_values},
        )


class Conflict(ServiceError):
    status_code = 409
    code = "conflict"


class InvalidState(ServiceError):
    status_code = 400
    code = "invalid_state"


def parse_enum(enum_cls: Type[enum.Enum], value: Any, field: str):
    """Coerce a client-supplied value into enum_cls, case-insensitively.

    Raises:
        InvalidArgument: The value is not one of the enum's values
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise InvalidArgument.not_in(field, value, enum_cls)
