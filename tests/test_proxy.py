import unittest
from unittest import mock
import os
import sys
import tempfile

# Add the parent directory to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from local_metrics_proxy.backend import BACKEND_KINDS, UnixSocketBackend, new_backend
from local_metrics_proxy.errors import ProvisionError, RuntimeDialError, RuntimeIOError
from local_metrics_proxy.handler import HandlerChain
from local_metrics_proxy.models import Config, HTTPRequest, HTTPResponse, ResponseWriter, UnixSocket
from local_metrics_proxy.proxy import LocalMetricsProxy, module_id, register
from local_metrics_proxy.registry import ModuleRegistry

from unix_backend import UnixBackendServer


def make_request():
    return HTTPRequest.from_raw_data(
        "GET /metrics HTTP/1.1\r\n"
        "Host: localhost:8080\r\n"
        "\r\n"
    )


class FakeBackend:
    def __init__(self, stream):
        self.stream = stream
        self.opened = 0

    def open(self):
        self.opened += 1
        return self.stream


class TestLocalMetricsProxy(unittest.TestCase):
    """Test cases for relaying a backend into the response."""

    def setUp(self):
        self.request = make_request()
        self.writer = ResponseWriter()
        self.next_handler = mock.Mock(spec=['serve_http'])

    def _proxy_with_stream(self, stream):
        backend = FakeBackend(stream)
        proxy = LocalMetricsProxy(Config(backend=UnixSocket(path="/run/fake.sock")))
        with mock.patch('local_metrics_proxy.proxy.new_backend', return_value=backend):
            proxy.provision()
        return proxy, backend

    def test_relays_backend_bytes_then_calls_next(self):
        payload = b"# HELP requests_total Total requests\nrequests_total 42\n" * 200
        backend = UnixBackendServer(payload)
        self.addCleanup(backend.close)

        proxy = LocalMetricsProxy(Config(backend=UnixSocket(path=backend.path)))
        proxy.provision()
        proxy.serve_http(self.request, self.writer, self.next_handler)

        self.assertEqual(self.writer.body, payload)
        self.next_handler.serve_http.assert_called_once_with(self.request, self.writer)

    def test_opens_a_connection_per_request(self):
        backend = UnixBackendServer(b"ok")
        self.addCleanup(backend.close)

        proxy = LocalMetricsProxy(Config(backend=UnixSocket(path=backend.path)))
        proxy.provision()
        proxy.serve_http(self.request, ResponseWriter(), self.next_handler)
        proxy.serve_http(self.request, ResponseWriter(), self.next_handler)

        self.assertEqual(self.next_handler.serve_http.call_count, 2)
        self.assertEqual(backend.connections, 2)

    def test_empty_backend_output_still_calls_next(self):
        stream = mock.Mock(spec=['recv', 'close'])
        stream.recv.return_value = b""
        proxy, _ = self._proxy_with_stream(stream)

        proxy.serve_http(self.request, self.writer, self.next_handler)

        self.assertEqual(self.writer.body, b"")
        self.next_handler.serve_http.assert_called_once_with(self.request, self.writer)
        stream.close.assert_called_once_with()

    def test_request_is_not_sent_to_backend(self):
        # The stream has no send methods, any attempt to use one fails
        stream = mock.Mock(spec=['recv', 'close'])
        stream.recv.side_effect = [b"data", b""]
        proxy, _ = self._proxy_with_stream(stream)

        proxy.serve_http(self.request, self.writer, self.next_handler)

        self.assertEqual(self.writer.body, b"data")

    def test_unreachable_backend(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "missing.sock")
            proxy = LocalMetricsProxy(Config(backend=UnixSocket(path=path)))
            proxy.provision()

            with self.assertRaises(RuntimeDialError) as ctx:
                proxy.serve_http(self.request, self.writer, self.next_handler)

        self.assertIn(f"dial unix {path}", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, OSError)
        self.next_handler.serve_http.assert_not_called()

    def test_provision_without_backend(self):
        for config in [Config(), Config(backend=UnixSocket(path=""))]:
            with self.subTest(config=config):
                proxy = LocalMetricsProxy(config)
                with self.assertRaises(ProvisionError) as ctx:
                    proxy.provision()
                self.assertEqual(str(ctx.exception), "proxy backend not configured")

    @mock.patch('local_metrics_proxy.proxy.new_backend')
    def test_serve_without_backend(self, new_backend_mock):
        proxy = LocalMetricsProxy(Config())

        with self.assertRaises(ProvisionError) as ctx:
            proxy.serve_http(self.request, self.writer, self.next_handler)

        self.assertEqual(str(ctx.exception), "proxy backend not configured")
        new_backend_mock.assert_not_called()
        self.next_handler.serve_http.assert_not_called()

    def test_read_error_closes_stream(self):
        stream = mock.Mock(spec=['recv', 'close'])
        stream.recv.side_effect = [b"partial", ConnectionResetError("reset by peer")]
        proxy, _ = self._proxy_with_stream(stream)

        with self.assertRaises(RuntimeIOError):
            proxy.serve_http(self.request, self.writer, self.next_handler)

        stream.close.assert_called_once_with()
        self.next_handler.serve_http.assert_not_called()

    def test_write_error_closes_stream(self):
        stream = mock.Mock(spec=['recv', 'close'])
        stream.recv.side_effect = [b"data", b""]
        proxy, _ = self._proxy_with_stream(stream)
        writer = mock.Mock(spec=['write'])
        writer.write.side_effect = BrokenPipeError("client gone")

        with self.assertRaises(RuntimeIOError):
            proxy.serve_http(self.request, writer, self.next_handler)

        stream.close.assert_called_once_with()
        self.next_handler.serve_http.assert_not_called()

    def test_close_error_supersedes_successful_relay(self):
        stream = mock.Mock(spec=['recv', 'close'])
        stream.recv.side_effect = [b"data", b""]
        stream.close.side_effect = OSError("close failed")
        proxy, _ = self._proxy_with_stream(stream)

        with self.assertRaises(RuntimeIOError) as ctx:
            proxy.serve_http(self.request, self.writer, self.next_handler)

        self.assertIn("close failed", str(ctx.exception))
        self.assertEqual(self.writer.body, b"data")
        self.next_handler.serve_http.assert_not_called()

    def test_chain_runs_proxy_before_next_stage(self):
        stream = mock.Mock(spec=['recv', 'close'])
        stream.recv.side_effect = [b"metrics\n", b""]
        proxy, _ = self._proxy_with_stream(stream)
        seen = []

        class Final:
            def serve_http(self, request, writer):
                seen.append(writer.body)
                writer.write(b"done\n")

        HandlerChain([proxy], Final()).serve_http(self.request, self.writer)

        self.assertEqual(seen, [b"metrics\n"])
        self.assertEqual(self.writer.body, b"metrics\ndone\n")


class TestBackend(unittest.TestCase):
    """Test cases for building backends from their configuration."""

    def test_new_backend(self):
        backend = new_backend(UnixSocket(path="/run/foo"))

        self.assertIsInstance(backend, UnixSocketBackend)
        self.assertEqual(backend.path, "/run/foo")

    def test_backend_kinds(self):
        self.assertEqual(set(BACKEND_KINDS), {"uds"})

    def test_dial_closes_socket_on_failure(self):
        backend = UnixSocketBackend("/nonexistent/dir/backend.sock")

        with mock.patch('local_metrics_proxy.backend.socket.socket') as socket_cls:
            sock = socket_cls.return_value
            sock.connect.side_effect = FileNotFoundError(2, "No such file or directory")
            with self.assertRaises(RuntimeDialError) as ctx:
                backend.open()

        sock.close.assert_called_once_with()
        self.assertEqual(
            str(ctx.exception),
            "dial unix /nonexistent/dir/backend.sock: No such file or directory"
        )


class TestRegistry(unittest.TestCase):
    """Test cases for explicit module registration."""

    def test_register(self):
        registry = ModuleRegistry()
        self.assertNotIn(module_id(), registry)

        register(registry)

        self.assertIn("http.handlers.local_metrics_proxy", registry)
        info = registry.lookup_directive("local_metrics_proxy")
        self.assertIs(registry.get(module_id()), info)

        config = info.parse('local_metrics_proxy {\n uds {\n  path "/run/foo"\n }\n}')
        module = info.new(config)
        self.assertIsInstance(module, LocalMetricsProxy)
        self.assertEqual(module.config, config)

    def test_register_twice(self):
        registry = ModuleRegistry()
        register(registry)

        with self.assertRaises(ValueError):
            register(registry)

    def test_unknown_module(self):
        registry = ModuleRegistry()

        with self.assertRaises(KeyError):
            registry.get("http.handlers.unknown")
        with self.assertRaises(KeyError):
            registry.lookup_directive("unknown")


class TestModels(unittest.TestCase):
    """Test cases for the host request and response models."""

    def test_request_parsing(self):
        request = make_request()

        self.assertEqual(request.method, "GET")
        self.assertEqual(request.path, "/metrics")
        self.assertEqual(request.protocol, "HTTP/1.1")
        self.assertEqual(request.headers['Host'], "localhost:8080")

    def test_invalid_request(self):
        self.assertIsNone(HTTPRequest.from_raw_data("garbage\r\n\r\n"))

    def test_error_response(self):
        data = HTTPResponse.create_error(502, "Bad Gateway").to_bytes()

        self.assertTrue(data.startswith(b"HTTP/1.1 502 Bad Gateway\r\n"))
        self.assertIn(b"Content-Type: text/plain\r\n", data)
        self.assertIn(b"Content-Length: 11\r\n", data)
        self.assertEqual(data.count(b"Content-Length:"), 1)
        self.assertTrue(data.endswith(b"\r\n\r\nBad Gateway"))

    def test_error_response_headers(self):
        response = HTTPResponse.create_error(500, "Internal Server Error")

        self.assertEqual(response.headers, {'Content-Type': 'text/plain'})

    def test_writer_response(self):
        writer = ResponseWriter()
        self.assertEqual(writer.write(b"abc"), 3)

        response = writer.to_response()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.body, b"abc")
        self.assertEqual(response.headers['Content-Type'], 'application/octet-stream')


if __name__ == '__main__':
    unittest.main()
