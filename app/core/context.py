import contextvars

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
_operation: contextvars.ContextVar[str] = contextvars.ContextVar("operation", default="-")


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def set_operation(operation: str) -> None:
    _operation.set(operation)


def get_operation() -> str:
    return _operation.get()


def clear_context() -> None:
    _request_id.set("-")
    _operation.set("-")
