"""
Typed Exception Hierarchy for the Church Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every caller of the publication workflow (dashboard, mobile app, scripts)
must be able to tell a stale version apart from a diocese violation
without parsing message strings.  So:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        registry.update_church_profile(actor, church_id, version, changes)
    except ConflictError as e:       # retry after a fresh read
        ...
    except ForbiddenError as e:      # boundary violation, never retried
        api_response(code=e.code, reason=e.reason)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ChurchRegistryError (base)
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- GuardFailedError
    |
    +-- AccessError
    |   +-- UnauthorizedError
    |   +-- ForbiddenError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- NotFoundError
    |   +-- ChurchNotFoundError
    |   +-- ActorNotFoundError
    |
    +-- ValidationError
    |
    +-- ChurchAlreadyExistsError
    |
    +-- AuditError
    |   +-- AuditWriteError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- PersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                  | When raised                                    | Retry
----------------------|------------------------------------------------|------
INVALID_TRANSITION    | No edge for (from_status, to_status)           | no
GUARD_FAILED          | Edge guard false (heritage routing, note)      | no
UNAUTHORIZED          | Role does not hold the action / inactive actor | no
FORBIDDEN             | Diocese / parish / immutable-field boundary    | no
CONFLICT              | expected_version != stored version             | yes
NOT_FOUND             | Church or actor id does not exist              | no
VALIDATION_ERROR      | Malformed input                                | no
ALREADY_EXISTS        | Second Church for the same parish id           | no
AUDIT_WRITE_FAILED    | Ledger append failed -- operation not applied  | no
AUDIT_CHAIN_BROKEN    | Hash chain validation failed                   | no
IMMUTABILITY_VIOLATION| UPDATE/DELETE on a ledger record               | no
PERSISTENCE_ERROR     | Storage timeout / transient failure            | yes

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError etc.  Domain errors are caught
   as a group; built-in types would mix them with programming errors.

2. ``code`` is a class attribute so ``ConflictError.code`` works without
   instantiation (API docs, result objects, audit rows).

3. ``retryable`` marks the only two classes a caller may retry
   automatically: ConflictError (after a fresh read) and PersistenceError.
"""


class ChurchRegistryError(Exception):
    """
    Base exception for all church kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CHURCH_REGISTRY_ERROR"
    retryable: bool = False


# Workflow-related exceptions


class WorkflowError(ChurchRegistryError):
    """Base exception for status-transition errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """No edge exists for the requested (from_status, to_status) pair."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"No transition from '{from_status}' to '{to_status}'"
        )


class WorkflowDefinitionError(WorkflowError):
    """The edge table itself is malformed (raised at import time)."""

    code: str = "WORKFLOW_DEFINITION_INVALID"

    def __init__(self, from_status: str, to_status: str, reason: str):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(f"Bad edge {from_status} -> {to_status}: {reason}")


class TransitionNotAppliedError(WorkflowError):
    """An event was requested for a transition that was never applied."""

    code: str = "TRANSITION_NOT_APPLIED"

    def __init__(self, church_id: str, outcome: str):
        self.church_id = church_id
        self.outcome = outcome
        super().__init__(
            f"No event for church '{church_id}': transition outcome was '{outcome}'"
        )


class GuardFailedError(WorkflowError):
    """The edge exists and the actor may use it, but its guard is false."""

    code: str = "GUARD_FAILED"

    def __init__(self, guard: str, from_status: str, to_status: str, reason: str):
        self.guard = guard
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(
            f"Guard '{guard}' not satisfied for {from_status} -> {to_status}: {reason}"
        )


# Access-related exceptions


class AccessError(ChurchRegistryError):
    """Base exception for authorization gate denials."""

    code: str = "ACCESS_ERROR"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__(f"{action} denied for actor {actor_id}: {reason}")


class UnauthorizedError(AccessError):
    """The actor's role does not permit the action."""

    code: str = "UNAUTHORIZED"


class ForbiddenError(AccessError):
    """The action crosses a diocese/parish boundary or touches an immutable field."""

    code: str = "FORBIDDEN"


# Concurrency-related exceptions


class ConcurrencyError(ChurchRegistryError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """Optimistic concurrency conflict: the caller's version is stale."""

    code: str = "CONFLICT"
    retryable: bool = True

    def __init__(self, church_id: str, expected_version: int, actual_version: int | None):
        self.church_id = church_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on church {church_id}: expected {expected_version}, "
            f"found {actual_version}"
        )


# Lookup exceptions


class NotFoundError(ChurchRegistryError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ChurchNotFoundError(NotFoundError):
    """Church with given id does not exist."""

    def __init__(self, church_id: str):
        self.church_id = church_id
        super().__init__(f"Church not found: {church_id}")


class ActorNotFoundError(NotFoundError):
    """Actor with given uid does not exist."""

    def __init__(self, actor_id: str):
        self.actor_id = actor_id
        super().__init__(f"Actor not found: {actor_id}")


# Input exceptions


class ValidationError(ChurchRegistryError):
    """Malformed caller input."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class ChurchAlreadyExistsError(ChurchRegistryError):
    """A Church already exists for this parish id."""

    code: str = "ALREADY_EXISTS"

    def __init__(self, church_id: str):
        self.church_id = church_id
        super().__init__(f"Church already exists for parish: {church_id}")


# Audit-related exceptions


class AuditError(ChurchRegistryError):
    """Base exception for audit-ledger errors."""

    code: str = "AUDIT_ERROR"


class AuditWriteError(AuditError):
    """
    Appending to the audit ledger failed.

    Fatal for the whole operation: the surrounding transaction is rolled
    back so a transition is never half applied.
    """

    code: str = "AUDIT_WRITE_FAILED"

    def __init__(self, church_id: str, reason: str):
        self.church_id = church_id
        self.reason = reason
        super().__init__(f"Audit write failed for church {church_id}: {reason}")


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, record_id: str, expected_hash: str, actual_hash: str):
        self.record_id = record_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {record_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability-related exceptions


class ImmutabilityError(ChurchRegistryError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Storage exceptions


class PersistenceError(ChurchRegistryError):
    """Transient storage failure (timeout, dropped connection)."""

    code: str = "PERSISTENCE_ERROR"
    retryable: bool = True

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Persistence failure during {operation}: {reason}")
