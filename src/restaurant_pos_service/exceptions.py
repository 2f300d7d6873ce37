"""Exception hierarchy for the POS service.

Validation errors are raised before anything is written, so a caller that
catches one can assume no partial state was persisted. Backend errors wrap
the underlying botocore failure and are safe to retry.
"""


class POSError(Exception):
    """Base class for all POS domain errors."""


class EmptyOrderError(POSError):
    """Checkout attempted with no line items."""

    def __init__(self, message: str = "Cannot check out an empty cart") -> None:
        super().__init__(message)


class MissingContextError(POSError):
    """Required table or customer was not selected."""

    def __init__(self, missing: str) -> None:
        self.missing = missing
        super().__init__(f"A {missing} must be selected before checkout")


class UnpaidOrderError(POSError):
    """Completion attempted before the order is fully paid."""

    def __init__(self, order_id: str, total: object, paid: object) -> None:
        self.order_id = order_id
        self.total = total
        self.paid = paid
        super().__init__(
            f"Cannot complete unpaid order {order_id}: paid {paid} of {total}"
        )


class InvalidTransitionError(POSError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot change status from '{current}' to '{target}'")


class ConcurrentModificationError(POSError):
    """A conditional write lost a race with another session."""


class NotFoundError(POSError):
    """Referenced record does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection} '{doc_id}' not found")


class CategoryCycleError(POSError):
    """Re-parenting a category would create a cycle."""

    def __init__(self, category_id: str, parent_id: str) -> None:
        self.category_id = category_id
        self.parent_id = parent_id
        super().__init__(
            f"Category '{parent_id}' cannot be the parent of '{category_id}'"
        )


class ConfirmationRequiredError(POSError):
    """Destructive action attempted without explicit confirmation."""


class InvalidPaymentError(POSError):
    """Payment amount is zero, negative, or otherwise unusable."""


class PermissionDeniedError(POSError):
    """Caller's role does not allow the operation."""


class BackendUnavailableError(POSError):
    """The document store failed; the operation may be retried."""

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Document store unavailable during {operation}: {cause}")
