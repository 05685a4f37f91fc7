"""
Typed Exception Hierarchy for the Quote Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval failures must be distinguishable by the calling UI: "quote not
found", "you are not allowed to approve this tier" and "this request was
already rejected" all need different, actionable messages.  Generic
ValueError/RuntimeError force callers to parse message strings.

Every error in this module:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        orchestrator.approve(quote_id, user, role)
    except Exception as e:
        if "already" in str(e):  # FRAGILE - message might change
            refresh_screen()

Example - RIGHT way:
    try:
        orchestrator.approve(quote_id, user, role)
    except ApprovalAlreadyResolvedError as e:
        refresh_screen(status=e.status)
        api_response(code=e.code, quote=e.quote_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from QuoteKernelError:

    QuoteKernelError (base)
    |
    +-- NotFoundError
    |   +-- QuoteNotFoundError
    |   +-- ApprovalRequestNotFoundError
    |
    +-- AuthenticationError
    |
    +-- AuthorizationError
    |   +-- UnauthorizedApproverError
    |
    +-- ValidationError
    |   +-- InvalidQuoteValueError
    |   +-- RejectionCommentRequiredError
    |
    +-- ApprovalStateError
    |   +-- ApprovalAlreadyResolvedError
    |   +-- InvalidApprovalTransitionError
    |   +-- DuplicateApprovalError
    |
    +-- LedgerError
    |   +-- LedgerInconsistencyError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError
    |   +-- RoleLimitConfigurationError
    |
    +-- ExportError
        +-- QuoteExportError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-------------------------------------
Not found       | QUOTE_NOT_FOUND               | Quote ID doesn't exist
                | APPROVAL_REQUEST_NOT_FOUND    | Quote was never queued for approval
----------------|-------------------------------|-------------------------------------
Authentication  | AUTHENTICATION_REQUIRED       | No authenticated principal
----------------|-------------------------------|-------------------------------------
Authorization   | UNAUTHORIZED_APPROVER         | Exercised role not held / too low
----------------|-------------------------------|-------------------------------------
Validation      | INVALID_QUOTE_VALUE           | Negative / non-numeric quote value
                | REJECTION_COMMENT_REQUIRED    | Reject without a reason
----------------|-------------------------------|-------------------------------------
Approval state  | APPROVAL_ALREADY_RESOLVED     | Decision on a terminal request
                | INVALID_APPROVAL_TRANSITION   | Illegal status change
                | DUPLICATE_APPROVAL            | Same approver counted twice
----------------|-------------------------------|-------------------------------------
Ledger          | LEDGER_INCONSISTENT           | Approved actions != current_approvers
----------------|-------------------------------|-------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | UPDATE/DELETE of a ledger row
----------------|-------------------------------|-------------------------------------
Configuration   | ROLE_LIMIT_CONFIGURATION      | Role-limit ladder failed validation
----------------|-------------------------------|-------------------------------------
Export          | QUOTE_EXPORT_FAILED           | Export endpoint rejected the quote

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Domain exceptions inherit from Exception, never from ValueError or
   KeyError, so they can be caught as a group without mixing them with
   programming errors.

2. ``code`` is a class attribute: it is static per type and usable
   without instantiation (API docs, error tables in the UI).

3. All context is stored as attributes.  StructuredFormatter lifts every
   public attribute into the JSON log line as ``exc_<name>``.
"""


class QuoteKernelError(Exception):
    """
    Base exception for all quote kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "QUOTE_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(QuoteKernelError):
    """Base exception for missing quotes and approval requests."""

    code: str = "NOT_FOUND"


class QuoteNotFoundError(NotFoundError):
    """Quote with given ID was not found."""

    code: str = "QUOTE_NOT_FOUND"

    def __init__(self, quote_id: str):
        self.quote_id = quote_id
        super().__init__(f"Quote not found: {quote_id}")


class ApprovalRequestNotFoundError(NotFoundError):
    """
    No approval request exists for the quote.

    Raised when the quote was never submitted, or was auto-approved and
    therefore has no request row.
    """

    code: str = "APPROVAL_REQUEST_NOT_FOUND"

    def __init__(self, quote_id: str):
        self.quote_id = quote_id
        super().__init__(f"No approval request for quote {quote_id}")


# Authentication / authorization


class AuthenticationError(QuoteKernelError):
    """No authenticated principal was supplied."""

    code: str = "AUTHENTICATION_REQUIRED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Authentication required for {operation}")


class AuthorizationError(QuoteKernelError):
    """Base exception for principals whose roles do not qualify."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedApproverError(AuthorizationError):
    """
    The approver may not act on this request under the exercised role.

    Either the role is not held by the user, or it is below the request's
    approval tier and its configured range does not cover the quote value.
    """

    code: str = "UNAUTHORIZED_APPROVER"

    def __init__(self, user_id: str, role: str, approval_level: str, reason: str):
        self.user_id = user_id
        self.role = role
        self.approval_level = approval_level
        self.reason = reason
        super().__init__(
            f"User {user_id} cannot act as {role} on a {approval_level} "
            f"approval: {reason}"
        )


# Validation


class ValidationError(QuoteKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidQuoteValueError(ValidationError):
    """Quote value is negative, non-finite, or not a number."""

    code: str = "INVALID_QUOTE_VALUE"

    def __init__(self, value: object, reason: str):
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid quote value {value!r}: {reason}")


class RejectionCommentRequiredError(ValidationError):
    """A rejection must carry a non-empty reason."""

    code: str = "REJECTION_COMMENT_REQUIRED"

    def __init__(self, quote_id: str):
        self.quote_id = quote_id
        super().__init__(f"Rejecting quote {quote_id} requires a comment")


# Approval state


class ApprovalStateError(QuoteKernelError):
    """Base exception for approval lifecycle violations."""

    code: str = "APPROVAL_STATE_ERROR"


class ApprovalAlreadyResolvedError(ApprovalStateError):
    """The quote's approval request is already terminal."""

    code: str = "APPROVAL_ALREADY_RESOLVED"

    def __init__(self, quote_id: str, request_id: str, status: str):
        self.quote_id = quote_id
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Approval request {request_id} for quote {quote_id} "
            f"is already {status}"
        )


class InvalidApprovalTransitionError(ApprovalStateError):
    """Status change not permitted by the lifecycle state machine."""

    code: str = "INVALID_APPROVAL_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid approval transition: {from_status} -> {to_status}"
        )


class DuplicateApprovalError(ApprovalStateError):
    """The same approver already has a counted approval on this request."""

    code: str = "DUPLICATE_APPROVAL"

    def __init__(self, request_id: str, approver_id: str):
        self.request_id = request_id
        self.approver_id = approver_id
        super().__init__(
            f"Approver {approver_id} already approved request {request_id}"
        )


# Ledger


class LedgerError(QuoteKernelError):
    """Base exception for approval ledger errors."""

    code: str = "LEDGER_ERROR"


class LedgerInconsistencyError(LedgerError):
    """
    Count of Approved ledger rows differs from the request's counter.

    This should never happen: insert and increment share a transaction.
    Investigate immediately if raised.
    """

    code: str = "LEDGER_INCONSISTENT"

    def __init__(self, request_id: str, ledger_count: int, current_approvers: int):
        self.request_id = request_id
        self.ledger_count = ledger_count
        self.current_approvers = current_approvers
        super().__init__(
            f"Ledger inconsistency on request {request_id}: "
            f"{ledger_count} approved actions, current_approvers={current_approvers}"
        )


# Immutability


class ImmutabilityError(QuoteKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only ledger row."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(QuoteKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class RoleLimitConfigurationError(ConfigurationError):
    """Role-limit ladder failed validation and was not saved."""

    code: str = "ROLE_LIMIT_CONFIGURATION"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Role approval limits are invalid: " + "; ".join(self.errors)
        )


# Export


class ExportError(QuoteKernelError):
    """Base exception for the approved-quote export hook."""

    code: str = "EXPORT_ERROR"


class QuoteExportError(ExportError):
    """The export endpoint did not accept the quote."""

    code: str = "QUOTE_EXPORT_FAILED"

    def __init__(self, quote_id: str, reason: str, status_code: int | None = None):
        self.quote_id = quote_id
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Export of quote {quote_id} failed: {reason}")
