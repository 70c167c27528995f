from __future__ import annotations

"""
Counter dispatcher

Routes every request that no other router claimed:

  - GET  /?name=<name>       : read the counter
  - POST /incr?name=<name>   : add the body's ``amount`` (default 1)
  - POST /decr?name=<name>   : subtract the body's ``amount`` (default 1)

The path alone selects the operation; the body is read only for POST. A
request without ``name`` gets a plain-text hint and a request for any other
path gets ``404 Not found``. Neither reaches (or creates) a counter instance.

Replies are ``text/plain``: ``Durable Object '<name>' count: <value>``.
Store faults are not handled here; they surface as problem+json via the
error handlers.
"""

from typing import Awaitable, Callable, Dict

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from durable_counter.errors import StorageFault
from durable_counter.logging import get_logger
from durable_counter.models.counter import DEFAULT_AMOUNT, decode_amount, format_count
from durable_counter.services.counter import CounterInstance, CounterRegistry

log = get_logger(__name__)
router = APIRouter(tags=["counter"])

NAME_HINT = (
    "Select a Durable Object to contact by using"
    " the `name` URL query string parameter, for example, ?name=A"
)

Operation = Callable[[CounterInstance, int], Awaitable[int]]


async def _get(counter: CounterInstance, _amount: int) -> int:
    return await counter.get()


async def _increment(counter: CounterInstance, amount: int) -> int:
    return await counter.increment(amount)


async def _decrement(counter: CounterInstance, amount: int) -> int:
    return await counter.decrement(amount)


OPERATIONS: Dict[str, tuple[str, Operation]] = {
    "/": ("get", _get),
    "/incr": ("increment", _increment),
    "/decr": ("decrement", _decrement),
}


def get_registry(request: Request) -> CounterRegistry:
    return request.app.state.counters


def _record(request: Request, op: str, outcome: str) -> None:
    metrics = getattr(request.app.state, "metrics", None)
    if metrics is not None:
        metrics.record_operation(op, outcome)


@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def dispatch(request: Request) -> PlainTextResponse:
    name = request.query_params.get("name")
    if not name:
        return PlainTextResponse(NAME_HINT)

    resolved = OPERATIONS.get(request.url.path)
    if resolved is None:
        return PlainTextResponse("Not found", status_code=404)
    op, handler = resolved

    amount = DEFAULT_AMOUNT
    if request.method == "POST":
        amount = decode_amount(await request.body()).amount

    counter = get_registry(request).get(name)
    try:
        count = await handler(counter, amount)
    except StorageFault:
        _record(request, op, "storage_error")
        raise

    _record(request, op, "ok")
    log.info("counter_op", name=name, op=op, amount=amount if op != "get" else None, count=count)
    return PlainTextResponse(format_count(name, count))
