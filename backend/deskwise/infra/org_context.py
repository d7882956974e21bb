import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_current_org_id: ContextVar[uuid.UUID | None] = ContextVar("current_org_id", default=None)


def set_current_org_id(org_id: uuid.UUID | None) -> None:
    _current_org_id.set(org_id)


def get_current_org_id() -> uuid.UUID | None:
    return _current_org_id.get()


@contextmanager
def org_id_context(org_id: uuid.UUID | None) -> Iterator[None]:
    """Scope the current organization to a block, restoring the previous value on exit."""
    token = _current_org_id.set(org_id)
    try:
        yield
    finally:
        _current_org_id.reset(token)
