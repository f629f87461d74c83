"""
Error taxonomy for the Priority Task Manager.

Every rule violation in the category registry, the scoring engine and the
task store is raised as one of the exceptions below. Each carries a
machine-readable ``ErrorCode`` and the structured details a client needs
(totals for weight violations, counts for blocked deletions) so the HTTP
layer can serialize it without string parsing.
"""

from enum import Enum
from typing import Dict, Optional

from rest_framework import status


class ErrorCode(Enum):
    """Error codes returned in API responses."""
    SUCCESS = "SUCCESS"
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_WEIGHT_EXCEEDED = "ERR_WEIGHT_EXCEEDED"
    ERR_DUPLICATE_ID = "ERR_DUPLICATE_ID"
    ERR_CANNOT_MODIFY_DEFAULT = "ERR_CANNOT_MODIFY_DEFAULT"
    ERR_CANNOT_DELETE_DEFAULT = "ERR_CANNOT_DELETE_DEFAULT"
    ERR_IN_USE = "ERR_IN_USE"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_INVALID_IMPORT = "ERR_INVALID_IMPORT"


class PriorityError(Exception):
    """Base class for all typed failures."""

    code = ErrorCode.ERR_VALIDATION
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> Dict:
        return {}

    def to_dict(self) -> Dict:
        result = {
            'success': False,
            'error_code': self.code.value,
            'message': self.message,
        }
        result.update(self.details())
        return result


class ValidationError(PriorityError):
    """A malformed category or task field."""

    code = ErrorCode.ERR_VALIDATION

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def details(self) -> Dict:
        return {'field': self.field} if self.field else {}


class WeightExceeded(PriorityError):
    """The prospective total weight of a scope would exceed 100."""

    code = ErrorCode.ERR_WEIGHT_EXCEEDED

    def __init__(self, current: float, attempted: float, would_be: float):
        super().__init__(
            f"Total weight cannot exceed 100%. Current: {current:g}%, "
            f"adding: {attempted:g}%, new total would be: {would_be:g}%"
        )
        self.current = current
        self.attempted = attempted
        self.would_be = would_be

    def details(self) -> Dict:
        return {
            'current': self.current,
            'attempted': self.attempted,
            'would_be': self.would_be,
        }


class DuplicateId(PriorityError):
    code = ErrorCode.ERR_DUPLICATE_ID

    def __init__(self, category_id: str):
        super().__init__(
            f"Category ID '{category_id}' already exists. Please choose a different ID."
        )
        self.category_id = category_id

    def details(self) -> Dict:
        return {'id': self.category_id}


class CannotModifyDefault(PriorityError):
    code = ErrorCode.ERR_CANNOT_MODIFY_DEFAULT

    def __init__(self, category_id: str, attribute: str = 'default status'):
        super().__init__(f"Cannot modify {attribute} of default category '{category_id}'")
        self.category_id = category_id
        self.attribute = attribute

    def details(self) -> Dict:
        return {'id': self.category_id, 'attribute': self.attribute}


class CannotDeleteDefault(PriorityError):
    code = ErrorCode.ERR_CANNOT_DELETE_DEFAULT

    def __init__(self, category_id: str):
        super().__init__(f"Cannot delete default category '{category_id}'")
        self.category_id = category_id

    def details(self) -> Dict:
        return {'id': self.category_id}


class InUse(PriorityError):
    """Category deletion blocked by tasks that still rate it."""

    code = ErrorCode.ERR_IN_USE
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, category_id: str, count: int):
        super().__init__(
            f"Cannot delete category '{category_id}'. "
            f"It is being used by {count} task(s)."
        )
        self.category_id = category_id
        self.count = count

    def details(self) -> Dict:
        return {'id': self.category_id, 'count': self.count}


class NotFound(PriorityError):
    code = ErrorCode.ERR_NOT_FOUND
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, kind: str, identifier):
        super().__init__(f"{kind} '{identifier}' not found")
        self.kind = kind
        self.identifier = identifier

    def details(self) -> Dict:
        return {'kind': self.kind, 'id': self.identifier}


class InvalidImport(PriorityError):
    """An import, restore or migration payload that cannot be read at all."""

    code = ErrorCode.ERR_INVALID_IMPORT
