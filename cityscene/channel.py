"""Request/response channel with correlation ids, timeouts and cancellation.

A requester awaits :meth:`RequestChannel.request`; the responder receives
``(request_id, payload)`` and answers later through
:meth:`RequestChannel.respond` with the same id.  Responses for unknown,
finished or cancelled requests are dropped.
"""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .constants import REQUEST_TIMEOUT
from .errors import RequestTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class Response:
    request_id: str
    ok: bool
    payload: Any = None
    error: Optional[str] = None


class RequestChannel:
    def __init__(self, responder: Optional[Callable] = None,
                 default_timeout: float = REQUEST_TIMEOUT):
        self.responder = responder
        self.default_timeout = default_timeout
        self._pending: Dict[str, asyncio.Future] = {}
        self._tasks: set = set()
        self._cancelled: set = set()

    @property
    def pending(self) -> list:
        return list(self._pending)

    async def request(self, payload: Any = None, timeout: Optional[float] = None,
                      raise_on_failure: bool = False) -> Response:
        """Send ``payload`` and wait for the matching response.

        Failures (responder error, timeout, cancellation) come back as a
        ``Response`` with ``ok=False`` unless ``raise_on_failure`` is set,
        in which case a timeout raises :class:`RequestTimeoutError`.
        """
        timeout = self.default_timeout if timeout is None else timeout
        request_id = str(uuid.uuid4())
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            self._dispatch(request_id, payload)
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            msg = f"Request {request_id} timed out after {timeout}s"
            logger.warning(msg)
            if raise_on_failure:
                raise RequestTimeoutError(msg)
            return Response(request_id=request_id, ok=False, error=msg)
        except asyncio.CancelledError:
            # only cancel(request_id) is answered; task cancellation propagates
            if request_id not in self._cancelled:
                raise
            return Response(request_id=request_id, ok=False, error="cancelled")
        finally:
            self._pending.pop(request_id, None)
            self._cancelled.discard(request_id)

    def respond(self, request_id: str, ok: bool = True, payload: Any = None,
                error: Optional[str] = None) -> bool:
        """Deliver a response; False if nobody is waiting for ``request_id``."""
        future = self._pending.get(request_id)
        if future is None or future.done():
            logger.debug(f"Dropping response for unknown or finished request {request_id}")
            return False
        future.set_result(Response(request_id=request_id, ok=ok,
                                   payload=payload, error=error))
        return True

    def cancel(self, request_id: str) -> bool:
        future = self._pending.get(request_id)
        if future is None or future.done():
            return False
        self._cancelled.add(request_id)
        future.cancel()
        return True

    def _dispatch(self, request_id: str, payload: Any) -> None:
        if self.responder is None:
            return
        try:
            result = self.responder(request_id, payload)
        except Exception as e:
            logger.exception(f"Responder failed for request {request_id}")
            self.respond(request_id, ok=False, error=str(e))
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
