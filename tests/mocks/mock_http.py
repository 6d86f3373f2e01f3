from typing import Callable, List, Optional

import httpx


class RecordingTransport:
    """
    Wraps httpx.MockTransport. Either serves ``responses`` in order (an
    exception instance in the queue is raised instead) or delegates to
    ``handler``. Every request is kept in ``requests``.
    """

    def __init__(self, responses: Optional[list] = None, handler: Optional[Callable] = None):
        self.requests: List[httpx.Request] = []
        self._responses = list(responses or [])
        self._handler = handler
        self.transport = httpx.MockTransport(self._dispatch)

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._handler is not None:
            return self._handler(request)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]
