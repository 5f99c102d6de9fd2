import socket
import threading
import logging
from typing import Optional, Tuple

from .handler import Handler, RequestHandler

logger = logging.getLogger(__name__)


class ProxyServer:
    """Threaded HTTP server passing every request through a handler chain."""

    def __init__(self, chain: Handler, host: str = "localhost", port: int = 8080,
                 timeout: int = 5):
        """
        Initialize the proxy server.

        Args:
            chain: Handler chain run for each request
            host: Host address to bind the server
            port: Port number to listen on, 0 picks a free one
            timeout: Client socket timeout in seconds
        """
        self._host = host
        self._port = port

        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        self._handler = RequestHandler(chain, timeout=timeout)

        self._running = False
        self._bound = threading.Event()

    @property
    def host(self) -> str:
        """Get the host address."""
        return self._host

    @property
    def port(self) -> int:
        """Get the port number."""
        return self._port

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Address actually bound, once the server has started."""
        if not self._bound.is_set():
            return None
        return self._server_socket.getsockname()[:2]

    @property
    def server_socket(self) -> socket.socket:
        """Get the server socket."""
        return self._server_socket

    def wait_until_bound(self, timeout: Optional[float] = None) -> bool:
        return self._bound.wait(timeout)

    def start(self) -> None:
        """Start the proxy server."""
        self._running = True
        try:
            self._server_socket.bind((self._host, self._port))
            self._server_socket.listen(128)
            self._bound.set()
            host, port = self.address
            logger.info(f"Local metrics proxy started on {host}:{port}")

            while self._running:
                try:
                    client_socket, client_address = self._server_socket.accept()
                    if not self._running:
                        client_socket.close()
                        break

                    # Handle each client in a separate thread
                    thread = threading.Thread(
                        target=self._handler.handle_client,
                        args=(client_socket, client_address)
                    )
                    thread.daemon = True
                    thread.start()
                except OSError as e:
                    if self._running:  # Only log if we're still meant to be running
                        logger.error(f"Server error: {e}")

        finally:
            self._server_socket.close()

    def shutdown(self) -> None:
        """Shutdown the proxy server gracefully."""
        self._running = False
        address = self.address
        # Create a dummy connection to unblock accept()
        if address is not None:
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.connect(address)
            except OSError as e:
                logger.debug(f"Wake-up connection failed: {e}")
        self._server_socket.close()
