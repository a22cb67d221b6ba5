"""
Typed Exception Hierarchy for myRC.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from MyRCError:

    MyRCError (base)
    |
    +-- NotFoundError
    |   +-- UserNotFoundError
    |   +-- ResponsibilityCentreNotFoundError
    |   +-- FiscalYearNotFoundError
    |
    +-- AccessError
    |   +-- AccessDeniedError
    |   +-- DemoRCProtectedError
    |   +-- FiscalYearInactiveError
    |
    +-- ValidationError
    |   +-- InvalidCurrencyError
    |   +-- InvalidExchangeRateError
    |   +-- InvalidEnumValueError
    |
    +-- ConflictError
    |   +-- DuplicateNameError
    |
    +-- BusinessRuleError
    |   +-- DefaultEntityProtectedError
    |   +-- MoneyInUseError
    |   +-- LastOwnerError
    |   +-- OriginalOwnerProtectedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- AuthenticationError
    +-- RegistrationError
    +-- AttachmentError
    +-- AuditRecordingError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | HTTP | When Raised
--------------|-----------------------------|------|------------------------------
Not found     | NOT_FOUND                   | 404  | Entity ID doesn't exist
              | USER_NOT_FOUND              | 404  | Username unknown locally/directory
              | RC_NOT_FOUND                | 404  | RC ID doesn't exist
              | FISCAL_YEAR_NOT_FOUND       | 404  | FY missing or not under the RC
--------------|-----------------------------|------|------------------------------
Access        | ACCESS_DENIED               | 403  | Caller lacks the required level
              | DEMO_RC_PROTECTED           | 403  | Mutating the Demo RC
              | FISCAL_YEAR_INACTIVE        | 403  | Mutating an inactive FY
--------------|-----------------------------|------|------------------------------
Validation    | VALIDATION_ERROR            | 400  | Missing / malformed input
              | INVALID_CURRENCY            | 400  | Unknown currency code
              | INVALID_EXCHANGE_RATE       | 400  | Missing or non-positive rate
              | INVALID_ENUM_VALUE          | 400  | Unknown status / type value
--------------|-----------------------------|------|------------------------------
Conflict      | DUPLICATE_NAME              | 409  | Name / code / PR already used
--------------|-----------------------------|------|------------------------------
Business rule | BUSINESS_RULE_VIOLATION     | 400  | Generic rule violation
              | DEFAULT_ENTITY_PROTECTED    | 400  | Editing default money/category
              | MONEY_IN_USE                | 400  | Money has non-zero allocations
              | LAST_OWNER                  | 400  | Removing the last RC owner
              | ORIGINAL_OWNER_PROTECTED    | 400  | Changing the RC creator's access
--------------|-----------------------------|------|------------------------------
Concurrency   | OPTIMISTIC_LOCK_CONFLICT    | 409  | Row version mismatch
--------------|-----------------------------|------|------------------------------
Auth          | AUTHENTICATION_FAILED       | 401  | Bad credentials / locked account
              | REGISTRATION_DISABLED       | 400  | Login-method config forbids it
--------------|-----------------------------|------|------------------------------
Files         | ATTACHMENT_REJECTED         | 400  | Too large / disallowed type
--------------|-----------------------------|------|------------------------------
Audit         | AUDIT_FAILURE               | 500  | Audit row could not be written

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Codes are class attributes so the API layer can map a whole category to an
   HTTP status without instantiating anything.

2. User-facing messages are carried verbatim in ``str(exc)``; structured fields
   (entity_type, entity_id, rc_id, ...) are attributes for logging.
"""


class MyRCError(Exception):
    """
    Base exception for all myRC errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "MYRC_ERROR"


# Not-found exceptions


class NotFoundError(MyRCError):
    """Entity with given ID was not found."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: object, message: str | None = None):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(message or f"{entity_type} not found: {entity_id}")


class UserNotFoundError(NotFoundError):
    """Username is neither a local account nor a directory entry."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, username: str):
        self.username = username
        super().__init__("User", username, f"User not found: {username}")


class ResponsibilityCentreNotFoundError(NotFoundError):
    """Responsibility Centre with given ID was not found."""

    code: str = "RC_NOT_FOUND"

    def __init__(self, rc_id: object):
        super().__init__(
            "Responsibility Centre", rc_id, f"Responsibility Centre not found: {rc_id}"
        )


class FiscalYearNotFoundError(NotFoundError):
    """Fiscal year was not found (or does not belong to the given RC)."""

    code: str = "FISCAL_YEAR_NOT_FOUND"

    def __init__(self, fiscal_year_id: object):
        super().__init__("Fiscal year", fiscal_year_id, f"Fiscal year not found: {fiscal_year_id}")


# Access exceptions


class AccessError(MyRCError):
    """Base exception for authorization failures."""

    code: str = "ACCESS_ERROR"


class AccessDeniedError(AccessError):
    """Caller's effective access level on the RC is insufficient."""

    code: str = "ACCESS_DENIED"

    def __init__(
        self,
        rc_id: object,
        username: str,
        required: str,
        message: str | None = None,
    ):
        self.rc_id = str(rc_id)
        self.username = username
        self.required = required
        super().__init__(
            message or f"{required} access denied to responsibility centre: {rc_id}"
        )


class DemoRCProtectedError(AccessError):
    """The Demo RC is read-only and its permissions cannot be modified."""

    code: str = "DEMO_RC_PROTECTED"

    def __init__(self, message: str = "Cannot modify permissions for the Demo RC"):
        super().__init__(message)


class FiscalYearInactiveError(AccessError):
    """An inactive fiscal year rejects every mutation except toggling it back."""

    code: str = "FISCAL_YEAR_INACTIVE"

    def __init__(self, fiscal_year_id: object):
        self.fiscal_year_id = str(fiscal_year_id)
        super().__init__(
            "This fiscal year is inactive and read-only. No changes are allowed."
        )


# Validation exceptions


class ValidationError(MyRCError):
    """Request data is missing or malformed."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidCurrencyError(ValidationError):
    """Currency code is not one of the supported currencies."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid currency: {currency}", field="currency")


class InvalidExchangeRateError(ValidationError):
    """Exchange rate missing or not positive for a non-CAD currency."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, currency: str, rate: object):
        self.currency = currency
        self.rate = rate
        super().__init__(
            "Exchange rate is required for non-CAD currency and must be greater than 0",
            field="exchange_rate",
        )


class InvalidEnumValueError(ValidationError):
    """Value is not a member of the expected enumeration."""

    code: str = "INVALID_ENUM_VALUE"

    def __init__(self, label: str, value: object, field: str | None = None):
        self.label = label
        self.value = value
        super().__init__(f"Invalid {label}: {value}", field=field)


# Conflict exceptions


class ConflictError(MyRCError):
    """Base exception for uniqueness conflicts."""

    code: str = "CONFLICT"


class DuplicateNameError(ConflictError):
    """Name (or code / requisition number) already used in its scope."""

    code: str = "DUPLICATE_NAME"

    def __init__(self, entity_type: str, name: str, message: str | None = None):
        self.entity_type = entity_type
        self.name = name
        super().__init__(message or f"A {entity_type} with name '{name}' already exists")


# Business-rule exceptions


class BusinessRuleError(MyRCError):
    """Operation is well-formed but forbidden by a domain rule."""

    code: str = "BUSINESS_RULE_VIOLATION"


class DefaultEntityProtectedError(BusinessRuleError):
    """Default money / default categories cannot be changed or removed."""

    code: str = "DEFAULT_ENTITY_PROTECTED"

    def __init__(self, entity_type: str, message: str):
        self.entity_type = entity_type
        super().__init__(message)


class MoneyInUseError(BusinessRuleError):
    """Money still has non-zero funding or spending allocations."""

    code: str = "MONEY_IN_USE"

    def __init__(self, money_code: str):
        self.money_code = money_code
        super().__init__(
            f"Cannot delete money type \"{money_code}\" because it is in use "
            "with non-zero funding or spending allocations"
        )


class LastOwnerError(BusinessRuleError):
    """Demoting or removing the last owner of an RC."""

    code: str = "LAST_OWNER"

    def __init__(self, rc_id: object, message: str):
        self.rc_id = str(rc_id)
        super().__init__(message)


class OriginalOwnerProtectedError(BusinessRuleError):
    """The RC creator always keeps OWNER access."""

    code: str = "ORIGINAL_OWNER_PROTECTED"

    def __init__(self, rc_id: object, message: str):
        self.rc_id = str(rc_id)
        super().__init__(message)


# Concurrency exceptions


class ConcurrencyError(MyRCError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Authentication / registration


class AuthenticationError(MyRCError):
    """Credentials rejected, account disabled or locked."""

    code: str = "AUTHENTICATION_FAILED"

    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message)


class RegistrationError(MyRCError):
    """Self-registration refused by the login-method configuration."""

    code: str = "REGISTRATION_DISABLED"

    def __init__(self, message: str):
        super().__init__(message)


# Attachments


class AttachmentError(MyRCError):
    """Uploaded file is empty, too large, or of a disallowed type."""

    code: str = "ATTACHMENT_REJECTED"

    def __init__(self, message: str, file_name: str | None = None):
        self.file_name = file_name
        super().__init__(message)


# Audit


class AuditRecordingError(MyRCError):
    """Audit row could not be persisted; the guarded action must not run."""

    code: str = "AUDIT_FAILURE"

    def __init__(self, action: str, entity_type: str):
        self.action = action
        self.entity_type = entity_type
        super().__init__(
            "Audit recording failed. Action was not performed. "
            "Please try again or contact your administrator."
        )
