"""
Catalog admin errors.

Every error carries a short code plus keyword details so the HTTP layer
can render it with ``as_dict()``.

    raise DuplicateName('DUPLICATE_NAME', name='Tools')
"""

from typing import Any, List, Optional


class CatalogError(Exception):
    default_code = 'CATALOG_ERROR'

    def __init__(self, code: Optional[str] = None, **details: Any):
        self.code = code or self.default_code
        self.details = details
        message = f"{self.code}: {details}" if details else self.code
        super().__init__(message)

    def as_dict(self) -> dict:
        return {"code": self.code, **self.details}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{type(self).__name__}({self.code}: {details_str})"
        return f"{type(self).__name__}({self.code})"


class Unauthenticated(CatalogError):
    """No usable credential; the session is over until the next login."""
    default_code = 'UNAUTHENTICATED'


class TransportError(CatalogError):
    default_code = 'TRANSPORT_ERROR'

    def __init__(self, code: Optional[str] = None, status: Optional[int] = None, **details: Any):
        self.status = status
        super().__init__(code, status=status, **details)


class ApplicationError(CatalogError):
    """Business-rule rejection reported by the remote side."""
    default_code = 'APPLICATION_ERROR'

    def __init__(self, message: str, code: Optional[str] = None, **details: Any):
        self.message = message
        super().__init__(code, message=message, **details)


class ValidationError(CatalogError):
    """Local rule violation, raised before any network call."""
    default_code = 'VALIDATION_FAILED'

    def __init__(self, code: Optional[str] = None, violations: Optional[List[Any]] = None, **details: Any):
        self.violations = list(violations or [])
        if self.violations:
            details['violations'] = [v.as_dict() for v in self.violations]
        super().__init__(code, **details)


class DuplicateKey(ValidationError):
    default_code = 'DUPLICATE_KEY'


class DuplicateName(ValidationError):
    default_code = 'DUPLICATE_NAME'


class NotFound(CatalogError):
    default_code = 'NOT_FOUND'


class Busy(CatalogError):
    default_code = 'BUSY'


# Codes in use
# INVALID_FIELD: value rejected by the record schema
# IMMUTABLE_FIELD: key field of a persisted record
# LAST_LOCALIZATION: a product must keep one localization
# MISSING_FIELD: required value is empty
# NOT_PENDING: operation only valid for unsaved rows
# INVALID_LANG: translation language is not two letters
# SAVE_IN_PROGRESS / LOAD_IN_PROGRESS: busy flags
