from contextvars import ContextVar
from contextlib import contextmanager


request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
ingest_id_var: ContextVar[str | None] = ContextVar("ingest_id", default=None)


@contextmanager
def ingest_context(ingest_id: str | None):
    token = ingest_id_var.set(str(ingest_id) if ingest_id is not None else None)
    try:
        yield
    finally:
        ingest_id_var.reset(token)
