"""Order domain errors

Every failure of the order lifecycle is an OrderError carrying a stable
``code`` and the HTTP status the API answers with.
"""


class OrderError(Exception):
    """Base class for order lifecycle errors"""

    code = "order_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, "retryable": self.retryable}


class InvalidTransition(OrderError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, from_status: str, to_status: str, message: str = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(message or f"Cannot move order from {from_status} to {to_status}")


class RevisionBudgetExhausted(OrderError):
    code = "revision_budget_exhausted"
    status_code = 409

    def __init__(self, used: int, max_rounds: int):
        self.used = used
        self.max_rounds = max_rounds
        super().__init__(f"No revision rounds remaining ({used} of {max_rounds} used)")


class MissingActor(OrderError):
    code = "missing_actor"
    status_code = 400

    def __init__(self):
        super().__init__("An acting user is required to change an order")


class MissingReasonRequired(OrderError):
    code = "missing_reason"
    status_code = 400

    def __init__(self, to_status: str):
        self.to_status = to_status
        super().__init__(f"A reason is required to move an order to {to_status}")


class EditorNotAssigned(OrderError):
    code = "editor_not_assigned"
    status_code = 409

    def __init__(self, to_status: str):
        self.to_status = to_status
        super().__init__(f"An editor must be assigned before moving an order to {to_status}")


class ConcurrentModification(OrderError):
    code = "concurrent_modification"
    status_code = 409
    retryable = True

    def __init__(self, order_id: str, expected_version: int):
        self.order_id = order_id
        self.expected_version = expected_version
        super().__init__(
            f"Order {order_id} was changed by another request (expected version "
            f"{expected_version}); reload and retry"
        )


class OrderNotFound(OrderError):
    code = "not_found"
    status_code = 404

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order not found")


class UnknownStatus(OrderError):
    code = "unknown_status"
    status_code = 400

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown order status: {value!r}")
