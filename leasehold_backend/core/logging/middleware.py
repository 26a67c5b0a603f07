"""
Correlation ids for log records.

HTTP requests get a transaction id from the ``x-transaction-id`` header (or a
fresh one). Scheduled jobs run inside ``job_context`` which sets both a
transaction id and the job name so every line a sweep emits can be grouped.
"""

import logging
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

_transaction_id: ContextVar[str | None] = ContextVar("transaction_id", default=None)
_job_name: ContextVar[str | None] = ContextVar("job_name", default=None)


def generate_transaction_id() -> str:
    return str(uuid.uuid4())[:8]


def get_transaction_id() -> str:
    """Get the current transaction ID or generate a new one."""
    txn_id = _transaction_id.get()
    if txn_id is None:
        txn_id = generate_transaction_id()
        _transaction_id.set(txn_id)
    return txn_id


def set_transaction_id(txn_id: str) -> None:
    _transaction_id.set(txn_id)


def get_job_name() -> str | None:
    return _job_name.get()


@contextmanager
def job_context(name: str) -> Iterator[str]:
    """Tag log records emitted inside the block with a job name and run id."""
    run_id = generate_transaction_id()
    txn_token = _transaction_id.set(f"{name}:{run_id}")
    job_token = _job_name.set(name)
    try:
        yield run_id
    finally:
        _job_name.reset(job_token)
        _transaction_id.reset(txn_token)


class TransactionIdFilter(logging.Filter):
    """Adds transaction_id and job to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.transaction_id = get_transaction_id()
        record.job = get_job_name()
        return True


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Sets the transaction ID for the request and echoes it in the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        txn_id = request.headers.get("x-transaction-id") or generate_transaction_id()
        set_transaction_id(txn_id)

        response = await call_next(request)
        response.headers["x-transaction-id"] = txn_id
        return response
