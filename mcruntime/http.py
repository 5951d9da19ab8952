"""HTTP primitive functions.
"""

from urllib.error import HTTPError, URLError
from http.client import HTTPResponse
import urllib.request
import asyncio
import json
import ssl

from . import LAUNCHER_NAME, LAUNCHER_VERSION

from typing import Optional, Any, Callable, cast


__all__ = ["HttpResponse", "HttpError", "Fetch", "http_request", "fetch_json", "ssl_context"]


class HttpResponse:
    """An HTTP response containing the status, data and received headers.
    """

    def __init__(self, res: Optional[HTTPResponse]) -> None:

        self.status = 0 if res is None else res.status
        self.data = b"null" if res is None else res.read()
        self.headers = {}

        if res is not None:
            for header_name, header_value in res.headers.items():
                self.headers[header_name] = header_value

    def json(self) -> Any:
        """Parse the data as JSON. This may raise a JSONDecodeError.
        """
        return json.loads(self.data)

    def text(self) -> str:
        """Parse the data as UTF-8 text.
        """
        return self.data.decode()

    def __repr__(self) -> str:
        return f"<HttpResponse {self.status}>"


class HttpError(Exception):
    """An HTTP error, raised when the status code of the response is not 2xx.

    If any network error happens and it's impossible to receive a response from the
    server, an instance of `HttpResponse` with status equal to 0 is used (also has no
    headers and `null` data). The original reason for this error is given in the
    `reason` attribute in any case.
    """

    def __init__(self, res: HttpResponse, method: str, url: str, reason: URLError) -> None:
        super().__init__(res, method, url, reason)
        self.res = res
        self.method = method
        self.url = url
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.method} {self.url}: {self.res.status} ({self.reason})"

    def __repr__(self) -> str:
        return f"<HttpError {self.res}, origin: {self.method} {self.url}, reason: {self.reason}>"


# A fetch abstraction that can be given in place of the default GET request, this is
# typically used to go through a proxy or to serve canned responses.
Fetch = Callable[[str], HttpResponse]


def ssl_context() -> Optional[ssl.SSLContext]:
    """Return an SSL context using certifi's CA bundle if installed, or none to let the
    standard library use the system one.
    """
    try:
        import certifi
        return ssl.create_default_context(cafile=certifi.where())
    except ImportError:
        return None


def http_request(method: str, url: str, *,
    data: Optional[bytes] = None,
    headers: Optional[dict] = None,
    accept: Optional[str] = None,
    content_type: Optional[str] = None,
    timeout: Optional[float] = None
) -> HttpResponse:
    """Make a synchronous HTTP request.

    :return: The response returned should've a status of 2xx.
    :raises HttpError: An error wrapping a response that is not of status 2xx.
    """

    if headers is None:
        headers = {}
    if accept is not None:
        headers["Accept"] = accept
    if content_type is not None:
        headers["Content-Type"] = content_type
    if "User-Agent" not in headers:
        headers["User-Agent"] = f"{LAUNCHER_NAME}/{LAUNCHER_VERSION}"

    kwargs = {"context": ssl_context()}
    if timeout is not None:
        kwargs["timeout"] = timeout

    try:
        req = urllib.request.Request(url, data, headers, method=method)
        res: HTTPResponse = urllib.request.urlopen(req, **kwargs)
        return HttpResponse(res)
    except HTTPError as error:
        raise HttpError(HttpResponse(cast(HTTPResponse, error)), method, url, error)
    except URLError as error:
        raise HttpError(HttpResponse(None), method, url, error)


def _get_json(url: str) -> HttpResponse:
    return http_request("GET", url, accept="application/json")


async def fetch_json(url: str, fetch: Optional[Fetch] = None) -> Any:
    """Fetch the given URL with a GET request and decode its body as JSON. The request
    is run in the default executor to keep the event loop free.

    :param url: The URL to get.
    :param fetch: Optional fetch function used instead of the default GET request.
    :return: The decoded JSON value.
    :raises HttpError: If the default request fails, custom fetch functions may raise
    their own errors.
    """
    res = await asyncio.to_thread(fetch or _get_json, url)
    return res.json()
