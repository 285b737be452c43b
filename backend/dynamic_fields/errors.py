class DynamicFieldError(Exception):
    """Base class for dynamic field registry errors."""


class DynamicFieldValidationError(DynamicFieldError):
    """Raised when arguments are missing or malformed; nothing was written."""


class DynamicFieldNotFoundError(DynamicFieldError):
    """Raised when no definition matches the requested id or name."""


class DynamicFieldStoreError(DynamicFieldError):
    """Raised when the relational store rejects a query or a write."""


class DuplicateDynamicFieldError(DynamicFieldStoreError):
    """Raised when a definition with the same name already exists."""


class ReorderError(DynamicFieldError):
    """Raised when shifting sibling field orders cannot complete."""


class BackendError(DynamicFieldError):
    """Base class for backend resolution failures."""


class BackendConfigError(BackendError):
    """Raised when the field config given for resolution is unusable."""


class UnknownFieldTypeError(BackendError):
    """Raised when no backend is registered for a field type."""


class BackendLoadError(BackendError):
    """Raised when a registered backend cannot be imported or constructed."""
