from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from threading import Thread
import pytest
import time


def pytest_addoption(parser):
    parser.addoption("--runslow", action="store_true", default=False, help="run slow tests")

def pytest_configure(config):
    config.addinivalue_line("markers", "slow: mark test as slow to run")

def pytest_collection_modifyitems(config, items):

    if config.getoption("--runslow"):
        return
    
    skip_slow = pytest.mark.skip(reason="need --runslow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


class _Handler(BaseHTTPRequestHandler):

    def do_GET(self):
        server: "LocalServer" = self.server.local  # type: ignore
        server.requests.append(self.path)
        body = server.routes.get(self.path)
        if body is None:
            self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()
        else:
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            delay = server.delays.get(self.path)
            try:
                if delay is None:
                    self.wfile.write(body)
                else:
                    for i in range(len(body)):
                        self.wfile.write(body[i:i + 1])
                        self.wfile.flush()
                        time.sleep(delay)
            except (BrokenPipeError, ConnectionResetError):
                pass  # Client has aborted the transfer.

    def log_message(self, format, *args):
        pass


class LocalServer:
    """A local HTTP server serving static bodies per path, all requested paths are kept
    in order of arrival. Bodies of paths with a delay are sent byte per byte, waiting
    the delay in seconds after each byte.
    """

    def __init__(self) -> None:
        self.routes = {}
        self.delays = {}
        self.requests = []
        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
        self.httpd.local = self  # type: ignore
        self.host = f"127.0.0.1:{self.httpd.server_address[1]}"

    def url(self, path: str) -> str:
        return f"http://{self.host}{path}"


@pytest.fixture
def local_server(monkeypatch):
    """This fixture starts a local HTTP server for the duration of a test.
    """

    for var in ("http_proxy", "HTTP_PROXY", "https_proxy", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")

    server = LocalServer()
    thread = Thread(target=server.httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.httpd.shutdown()
        server.httpd.server_close()
