"""Definition of the download engine used to install files from manifests.

A single call to `download` fetches one file, trying each candidate URL in order and
retrying the whole list a fixed number of times. The blocking transfer itself runs in
the default executor, so many downloads can be awaited concurrently from one event loop.
"""

from http.client import HTTPResponse, HTTPException
from urllib.error import HTTPError, URLError
from pathlib import Path
import urllib.request
import threading
import asyncio
import os

from .http import ssl_context
from .util import calc_input_hash
from . import LAUNCHER_NAME, LAUNCHER_VERSION

from typing import Optional, List, Tuple, Union, Callable, cast


# Called with (url, chunk size or status, progress, total).
ProgressController = Callable[[str, int, int, int], None]

# Status given instead of a chunk size when an existing file is already valid.
STATUS_SKIPPED = -1


class CancelToken:
    """A cancellation token shared between many downloads. Once cancelled, all
    downloads using it abort as soon as possible, and those not yet started abort
    immediately.
    """

    __slots__ = "_event",

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise DownloadAbortedError()


class DownloadBaseOptions:
    """Common options of the download engine, usually given once and forwarded to each
    download of a batch.
    """

    __slots__ = "tries_count", "timeout", "buffer_len"

    def __init__(self, *,
        tries_count: int = 3,
        timeout: Optional[float] = None,
        buffer_len: int = 65536
    ) -> None:
        self.tries_count = tries_count
        self.timeout = timeout
        self.buffer_len = buffer_len


class ChecksumValidatorOptions:
    """The checksum expected for a file, given to validator resolvers.
    """

    __slots__ = "algorithm", "hash"

    def __init__(self, algorithm: str, hash: str) -> None:
        self.algorithm = algorithm
        self.hash = hash

    def __repr__(self) -> str:
        return f"<ChecksumValidatorOptions {self.algorithm}:{self.hash}>"


class Validator:
    """Base class for validators of downloaded files.
    """

    def validate(self, file: Path) -> None:
        """Validate the given file, raising a `ValidationError` if invalid. The default
        implementation accepts any file.
        """


class ChecksumValidator(Validator):
    """Validate a file against an expected hex digest, and optionally an expected size.
    """

    def __init__(self, algorithm: str, hash: str, size: Optional[int] = None) -> None:
        self.algorithm = algorithm
        self.hash = hash.lower()
        self.size = size

    @classmethod
    def from_options(cls, options: ChecksumValidatorOptions, size: Optional[int] = None) -> "ChecksumValidator":
        return cls(options.algorithm, options.hash, size)

    def validate(self, file: Path) -> None:

        if self.size is not None:
            actual_size = file.stat().st_size
            if actual_size != self.size:
                raise ValidationError(ValidationError.INVALID_SIZE, str(self.size), str(actual_size))

        with file.open("rb") as fp:
            actual_hash = calc_input_hash(fp, self.algorithm, buffer_len=65536)

        if actual_hash != self.hash:
            raise ValidationError(ValidationError.INVALID_CHECKSUM, self.hash, actual_hash)

    def __repr__(self) -> str:
        return f"<ChecksumValidator {self.algorithm}:{self.hash}>"


class ValidationError(Exception):
    """Raised by validators when a file is invalid, the code tells why.
    """

    INVALID_SIZE = "invalid_size"
    INVALID_CHECKSUM = "invalid_checksum"

    def __init__(self, code: str, expected: str, actual: str) -> None:
        super().__init__(code, expected, actual)
        self.code = code
        self.expected = expected
        self.actual = actual

    def __str__(self) -> str:
        return f"{self.code}: expected {self.expected}, got {self.actual}"


class DownloadError(Exception):
    """Raised when all tries of a download have failed. Each failed try is kept with
    the URL, the error code and the optional original error.
    """

    CONNECTION = "connection"
    NOT_FOUND = "not_found"
    INVALID_SIZE = ValidationError.INVALID_SIZE
    INVALID_CHECKSUM = ValidationError.INVALID_CHECKSUM

    def __init__(self, dst: Path, errors: List[Tuple[str, str, Optional[Exception]]]) -> None:
        super().__init__(dst, errors)
        self.dst = dst
        self.errors = errors

    def __str__(self) -> str:
        if not len(self.errors):
            return f"{self.dst}: no url to download from"
        url, code, origin = self.errors[-1]
        return f"{self.dst}: {code} from {url}" + ("" if origin is None else f" ({origin})") + \
            f", after {len(self.errors)} tries"


class DownloadAbortedError(Exception):
    """Raised when a download has been aborted through its cancel token.
    """

    def __str__(self) -> str:
        return "download aborted"


async def download(urls: Union[str, List[str]], dst: Path, *,
    validator: Optional[Validator] = None,
    progress_controller: Optional[ProgressController] = None,
    cancel: Optional[CancelToken] = None,
    executable: bool = False,
    options: Optional[DownloadBaseOptions] = None
) -> None:
    """Download a file to the given destination.

    :param urls: The URL, or the ordered list of candidate URLs, to download from. Each
    try goes through the whole list before retrying.
    :param dst: The destination file, its parent directories are created if needed.
    :param validator: Optional validator of the downloaded file. If the destination
    already exists and is valid, nothing is downloaded.
    :param progress_controller: Optional function called on the event loop for each
    received chunk, with (url, chunk size, progress, total). The total is 0 if unknown.
    :param cancel: Optional cancel token to abort the download.
    :param executable: Set to true to make the file executable for those who can read.
    :param options: Base options, defaults are used if not given.
    :raises DownloadError: If all tries failed.
    :raises DownloadAbortedError: If the cancel token has been cancelled.
    """

    if isinstance(urls, str):
        urls = [urls]

    report = None
    if progress_controller is not None:
        loop = asyncio.get_running_loop()
        controller = progress_controller
        def report(url: str, chunk: int, progress: int, total: int) -> None:
            loop.call_soon_threadsafe(controller, url, chunk, progress, total)

    await asyncio.to_thread(_download,
        list(urls),
        dst,
        validator,
        report,
        cancel,
        executable,
        options or DownloadBaseOptions())


def _download(
    urls: List[str],
    dst: Path,
    validator: Optional[Validator],
    report: Optional[ProgressController],
    cancel: Optional[CancelToken],
    executable: bool,
    options: DownloadBaseOptions
) -> None:
    """Blocking implementation of the download, run in an executor thread.
    """

    if cancel is not None:
        cancel.raise_if_cancelled()

    # An invalid existing file is just downloaded again.
    if validator is not None and dst.is_file() and _validate(validator, dst) is None:
        if report is not None:
            size = dst.stat().st_size
            report(urls[0] if len(urls) else "", STATUS_SKIPPED, size, size)
        return

    dst.parent.mkdir(parents=True, exist_ok=True)
    tmp_dst = dst.with_name(f"{dst.name}.part")

    errors: List[Tuple[str, str, Optional[Exception]]] = []

    try:
        for _try_num in range(options.tries_count):
            for url in urls:

                if cancel is not None:
                    cancel.raise_if_cancelled()

                try:
                    _transfer(url, tmp_dst, report, cancel, options)
                except HTTPError as e:
                    errors.append((url, DownloadError.NOT_FOUND, e))
                except (URLError, HTTPException, ConnectionError, OSError) as e:
                    errors.append((url, DownloadError.CONNECTION, e))
                else:
                    error = _validate(validator, tmp_dst)
                    if error is None:
                        if executable:
                            make_executable(tmp_dst)
                        os.replace(tmp_dst, dst)
                        return
                    errors.append((url, getattr(error, "code", DownloadError.INVALID_CHECKSUM), error))

                # We are here only when the try has failed.
                _unlink(tmp_dst)
    finally:
        _unlink(tmp_dst)

    raise DownloadError(dst, errors)


def _validate(validator: Optional[Validator], file: Path) -> Optional[Exception]:
    """Internal function returning the error of the validator, if any. Custom validators
    may raise other errors than `ValidationError`, these are invalid checksums.
    """
    if validator is None:
        return None
    try:
        validator.validate(file)
    except DownloadAbortedError:
        raise
    except Exception as e:
        return e
    return None


def make_executable(file: Path) -> None:
    """Make the given file executable, only for those that can read it.
    """
    prev_mode = file.stat().st_mode
    file.chmod(prev_mode | ((prev_mode & 0o444) >> 2))


def _transfer(
    url: str,
    dst: Path,
    report: Optional[ProgressController],
    cancel: Optional[CancelToken],
    options: DownloadBaseOptions
) -> None:
    """Internal function that streams the response of the given URL into a file.
    """

    req = urllib.request.Request(url, headers={"User-Agent": f"{LAUNCHER_NAME}/{LAUNCHER_VERSION}"})

    kwargs = {"context": ssl_context()}
    if options.timeout is not None:
        kwargs["timeout"] = options.timeout

    buffer = memoryview(bytearray(options.buffer_len))

    with cast(HTTPResponse, urllib.request.urlopen(req, **kwargs)) as res:

        total = int(res.headers.get("Content-Length") or 0)
        size = 0

        with dst.open("wb") as dst_fp:
            while True:

                if cancel is not None:
                    cancel.raise_if_cancelled()

                read_len = res.readinto(buffer)
                if not read_len:
                    break

                dst_fp.write(buffer[:read_len])
                size += read_len

                if report is not None:
                    report(url, read_len, size, total)


def _unlink(file: Path) -> None:
    try:
        file.unlink()
    except FileNotFoundError:
        pass  # Not a problem if the file isn't present.
