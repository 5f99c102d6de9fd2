import socket
import select
import logging
from typing import List, Optional, Protocol, Tuple

from .errors import ProxyError, RuntimeDialError
from .models import HTTPRequest, HTTPResponse, ResponseWriter

logger = logging.getLogger(__name__)


class Handler(Protocol):
    """Final stage of a handler chain."""

    def serve_http(self, request: HTTPRequest, writer: ResponseWriter) -> None:
        ...


class MiddlewareHandler(Protocol):
    """A chain stage that decides whether and when to call the next one."""

    def serve_http(self, request: HTTPRequest, writer: ResponseWriter,
                   next_handler: Handler) -> None:
        ...


class EmptyHandler:
    """Ends a chain without touching the response."""

    def serve_http(self, request: HTTPRequest, writer: ResponseWriter) -> None:
        return None


class _Link:
    def __init__(self, middleware: MiddlewareHandler, next_handler: Handler):
        self._middleware = middleware
        self._next = next_handler

    def serve_http(self, request: HTTPRequest, writer: ResponseWriter) -> None:
        return self._middleware.serve_http(request, writer, self._next)


class HandlerChain:
    """Middleware stages run in order, ending in a final handler."""

    def __init__(self, middleware: List[MiddlewareHandler],
                 final: Optional[Handler] = None):
        self._middleware = list(middleware)
        head: Handler = final if final is not None else EmptyHandler()
        for stage in reversed(self._middleware):
            head = _Link(stage, head)
        self._head = head

    def __len__(self) -> int:
        return len(self._middleware)

    def serve_http(self, request: HTTPRequest, writer: ResponseWriter) -> None:
        return self._head.serve_http(request, writer)


class RequestHandler:
    """Handles processing of individual HTTP requests."""

    def __init__(self, chain: Handler, timeout: int = 5):
        """
        Initialize the request handler.

        Args:
            chain: Handler chain every request is passed through
            timeout: Client socket timeout in seconds
        """
        self._chain = chain
        self._timeout = timeout

    def handle_client(self, client_socket: socket.socket,
                      client_address: Tuple[str, int]) -> None:
        """
        Handle an individual client connection.

        Args:
            client_socket: Socket object for client connection
            client_address: Tuple of client's IP and port
        """
        client_socket.settimeout(self._timeout)

        try:
            request_data = self._read_request(client_socket)
            if not request_data:
                return

            request = HTTPRequest.from_raw_data(request_data.decode('utf-8', errors='replace'))
            if not request:
                client_socket.sendall(HTTPResponse.create_error(400, "Bad Request").to_bytes())
                return

            response = self.serve(request)
            client_socket.sendall(response.to_bytes())

        except (OSError, ValueError) as e:
            logger.error(f"Error handling client {client_address}: {e}")
        finally:
            client_socket.close()

    def serve(self, request: HTTPRequest) -> HTTPResponse:
        """Run the chain for one request and turn its outcome into a response."""
        writer = ResponseWriter()
        try:
            self._chain.serve_http(request, writer)
        except RuntimeDialError as e:
            logger.error(f"Error serving {request.method} {request.path}: {e}")
            return HTTPResponse.create_error(502, "Bad Gateway")
        except ProxyError as e:
            logger.error(f"Error serving {request.method} {request.path}: {e}")
            return HTTPResponse.create_error(500, "Internal Server Error")
        return writer.to_response()

    def _read_request(self, client_socket: socket.socket) -> Optional[bytearray]:
        """Read the complete HTTP request from the client socket."""
        request_data = bytearray()

        while True:
            ready = select.select([client_socket], [], [], self._timeout)
            if not ready[0]:  # Timeout
                break

            chunk = client_socket.recv(4096)
            if not chunk:
                break

            request_data.extend(chunk)
            if b'\r\n\r\n' in request_data:
                headers = request_data.split(b'\r\n\r\n')[0].decode('utf-8', errors='replace')

                # The body is read so the client can finish sending, it is never forwarded
                for line in headers.split('\r\n'):
                    if line.lower().startswith('content-length:'):
                        content_length = int(line.split(':')[1].strip())
                        total_length = len(headers) + 4 + content_length

                        while len(request_data) < total_length:
                            chunk = client_socket.recv(4096)
                            if not chunk:
                                break
                            request_data.extend(chunk)
                break

        return request_data if request_data else None
