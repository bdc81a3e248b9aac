"""Base class for objects that turn HTTP requests into responses."""

from __future__ import annotations

import logging

from .request import HttpRequest
from .response import HttpResponse

logger = logging.getLogger(__name__)


class HttpRequestHandler:
    """Generates a response for each HTTP request.

    Subclasses override :meth:`service`; the default answers every request with
    501 "not implemented". One instance may be used by several threads at once,
    so ``service`` must be thread safe.
    """

    def service(self, request: HttpRequest, response: HttpResponse) -> None:
        """Generate the response for one request."""
        logger.critical("HttpRequestHandler: you need to override the service() function")
        logger.debug(
            "HttpRequestHandler: request=%r %r %r",
            request.method,
            request.path,
            request.version,
        )
        response.set_status(501, b"not implemented")
        response.write(b"501 not implemented", True)