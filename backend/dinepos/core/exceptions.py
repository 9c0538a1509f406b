"""Domain exceptions raised by the order engine services.

Routes never build HTTP errors for these by hand: the handlers registered in
``dinepos.main`` translate each class into its status code.
"""


class PosError(Exception):
    """Base class for every error the engine raises on purpose."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PosError):
    """Input rejected before anything was written."""

    status_code = 422


class NotFoundError(PosError):
    """Referenced entity does not exist in the store."""

    status_code = 404

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} '{key}' not found")


class InvalidTransitionError(PosError):
    """State change not allowed from the entity's current state."""

    status_code = 409

    def __init__(self, entity: str, current: str, requested: str):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move {entity} from {current} to {requested}")


class StoreWriteError(PosError):
    """The shared store rejected a write; nothing was committed."""

    status_code = 503

    def __init__(self, operation: str, reason: str = ""):
        self.operation = operation
        self.reason = reason
        message = f"{operation} did NOT complete: the store write failed"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message + ". Please retry.")
