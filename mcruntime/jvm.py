"""Resolution and installation of the Java runtimes officially distributed by Mojang.

Mojang publishes an index of all runtimes, per platform and per channel (for example
`jre-legacy` or `java-runtime-beta`), each runtime then has its own manifest listing all
files, directories and links to install. The `fetch_runtime_manifest` function resolves
such a manifest for a platform, and `install_runtime` installs it to a directory.
"""

from pathlib import Path
import urllib.parse
import platform as _platform
import inspect
import asyncio
import lzma as _lzma
import os

from .download import download, make_executable, DownloadBaseOptions, CancelToken, Validator, \
    ChecksumValidator, ChecksumValidatorOptions
from .http import Fetch, fetch_json
from .util import settled, from_iso_date, BatchError

from typing import Optional, Dict, List, Tuple, Union, Callable, Awaitable, Any


DEFAULT_RUNTIME_ALL_URL = "https://launchermeta.mojang.com/v1/products/java-runtime/2ec0cc96c44e5a76b9c8b7c39df7210883d12871/all.json"


class RuntimeTargetType:
    """Known channels of runtimes, any other string can be used as a target.
    """
    LEGACY = "jre-legacy"
    ALPHA = "java-runtime-alpha"
    BETA = "java-runtime-beta"
    GAMMA = "java-runtime-gamma"
    DELTA = "java-runtime-delta"
    JAVA_EXE = "minecraft-java-exe"


class Platform:
    """A platform as an OS name (windows, osx, linux) and an architecture (x64, x86,
    x32, arm64, arm).
    """

    __slots__ = "name", "arch"

    def __init__(self, name: str, arch: str) -> None:
        self.name = name
        self.arch = arch

    @classmethod
    def from_str(cls, s: str) -> "Platform":
        """Parse a platform string of the form 'name-arch', like 'linux-x64'.
        """
        name, sep, arch = s.partition("-")
        if not sep or not len(name) or not len(arch):
            raise ValueError(f"invalid platform: {s}")
        return cls(name, arch)

    def __eq__(self, other) -> bool:
        return isinstance(other, Platform) and (self.name, self.arch) == (other.name, other.arch)

    def __hash__(self) -> int:
        return hash((self.name, self.arch))

    def __str__(self) -> str:
        return f"{self.name}-{self.arch}"

    def __repr__(self) -> str:
        return f"<Platform {self}>"


# Platform keys of the runtime index, an architecture of none means any architecture.
platform_keys: Dict[Tuple[str, Optional[str]], str] = {
    ("windows", "x64"): "windows-x64",
    ("windows", "x86"): "windows-x86",
    ("windows", "x32"): "windows-x86",
    ("osx", None): "mac-os",
    ("linux", "x86"): "linux-i386",
    ("linux", "x32"): "linux-i386",
    ("linux", "x64"): "linux",
}


def get_platform() -> Platform:
    """Return the platform of the running system. The architecture name may not be
    supported by `resolve_platform_key`.
    """

    name = {
        "Windows": "windows",
        "Darwin": "osx",
        "Linux": "linux",
    }.get(_platform.system(), _platform.system().lower())

    machine = _platform.machine().lower()
    arch = {
        "i386": "x86",
        "i686": "x86",
        "x86": "x86",
        "x86_64": "x64",
        "amd64": "x64",
        "arm64": "arm64",
        "aarch64": "arm64",
        "armv7l": "arm",
        "armv6l": "arm",
    }.get(machine, machine)

    # A 32 bits interpreter on a 64 bits machine can only run 32 bits runtimes.
    if arch == "x64" and _platform.architecture()[0] == "32bit":
        arch = "x86"

    return Platform(name, arch)


def resolve_platform_key(platform: Platform) -> str:
    """Return the key of the runtime index for the given platform.

    :raises UnresolvablePlatformError: If no key exists for this platform.
    """
    key = platform_keys.get((platform.name, platform.arch))
    if key is None:
        key = platform_keys.get((platform.name, None))
    if key is None:
        raise UnresolvablePlatformError(platform)
    return key


def normalize_urls(url: str, api_host: Union[None, str, List[str]] = None) -> List[str]:
    """Compute the list of candidate URLs for the given URL and alternative host(s).

    With a single host, the rewritten URL comes first and the original one last if it
    differs. With a list of hosts, a rewritten URL is produced for each host in order,
    and the original URL is appended if not already present.
    """

    if not api_host:
        return [url]

    if isinstance(api_host, str):
        result = replace_url_host(url, api_host)
        if result != url:
            return [result, url]
        return [result]

    results = [replace_url_host(url, host) for host in api_host]
    if url not in results:
        results.append(url)

    return results


def replace_url_host(url: str, host: str) -> str:
    """Replace the host name of an URL, keeping any user info and port.
    """

    parts = urllib.parse.urlsplit(url)

    netloc = host
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"

    userinfo, at, _ = parts.netloc.rpartition("@")
    if at:
        netloc = f"{userinfo}@{netloc}"

    return urllib.parse.urlunsplit(parts._replace(netloc=netloc))


class DownloadInfo:
    """The download information of a resource: its URL, SHA-1 and size.
    """

    __slots__ = "url", "sha1", "size"

    def __init__(self, url: str, sha1: str, size: int) -> None:
        self.url = url
        self.sha1 = sha1
        self.size = size

    @classmethod
    def parse(cls, value: Any, path: str) -> "DownloadInfo":

        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")

        url = value.get("url")
        if not isinstance(url, str):
            raise ValueError(f"{path}/url must be a string")

        sha1 = value.get("sha1")
        if not isinstance(sha1, str):
            raise ValueError(f"{path}/sha1 must be a string")

        size = value.get("size")
        if not isinstance(size, int):
            raise ValueError(f"{path}/size must be an integer")

        return cls(url, sha1, size)

    def __repr__(self) -> str:
        return f"<DownloadInfo {self.url}>"


class RuntimeVersion:
    """The version of a runtime, the name is like '8u51', '17.0.1' and the release date
    is an ISO date string.
    """

    __slots__ = "name", "released"

    def __init__(self, name: str, released: str) -> None:
        self.name = name
        self.released = released

    def released_date(self):
        return from_iso_date(self.released)

    def __repr__(self) -> str:
        return f"<RuntimeVersion {self.name}>"


class RuntimeTarget:
    """A concrete runtime build as listed in the runtime index.
    """

    __slots__ = "availability_group", "availability_progress", "manifest", "version"

    def __init__(self,
        availability_group: int,
        availability_progress: int,
        manifest: DownloadInfo,
        version: RuntimeVersion
    ) -> None:
        self.availability_group = availability_group
        self.availability_progress = availability_progress
        self.manifest = manifest
        self.version = version

    @classmethod
    def parse(cls, value: Any, path: str) -> "RuntimeTarget":

        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")

        availability = value.get("availability", {})
        if not isinstance(availability, dict):
            raise ValueError(f"{path}/availability must be an object")

        manifest = DownloadInfo.parse(value.get("manifest"), f"{path}/manifest")

        version = value.get("version")
        if not isinstance(version, dict):
            raise ValueError(f"{path}/version must be an object")

        version_name = version.get("name")
        if not isinstance(version_name, str):
            raise ValueError(f"{path}/version/name must be a string")

        return cls(
            availability.get("group", 0),
            availability.get("progress", 0),
            manifest,
            RuntimeVersion(version_name, str(version.get("released", ""))))

    def __repr__(self) -> str:
        return f"<RuntimeTarget {self.version.name}>"


class Entry:
    """Base class of the entries of a runtime manifest, one of `FileEntry`,
    `DirectoryEntry` or `LinkEntry`.
    """

    __slots__ = ()

    @staticmethod
    def parse(value: Any, path: str) -> "Entry":

        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")

        typ = value.get("type")
        if typ == "file":

            downloads = value.get("downloads")
            if not isinstance(downloads, dict):
                raise ValueError(f"{path}/downloads must be an object")

            raw = DownloadInfo.parse(downloads.get("raw"), f"{path}/downloads/raw")
            compressed = downloads.get("lzma")
            if compressed is not None:
                compressed = DownloadInfo.parse(compressed, f"{path}/downloads/lzma")

            return FileEntry(bool(value.get("executable", False)), raw, compressed)

        elif typ == "directory":
            return DirectoryEntry()

        elif typ == "link":

            target = value.get("target")
            if not isinstance(target, str):
                raise ValueError(f"{path}/target must be a string")

            return LinkEntry(target)

        else:
            raise ValueError(f"{path}/type must be 'file', 'directory' or 'link'")


class FileEntry(Entry):

    __slots__ = "executable", "raw", "lzma"

    def __init__(self, executable: bool, raw: DownloadInfo, lzma: Optional[DownloadInfo] = None) -> None:
        self.executable = executable
        self.raw = raw
        self.lzma = lzma

    def __repr__(self) -> str:
        return f"<FileEntry {self.raw.url}>"


class DirectoryEntry(Entry):

    __slots__ = ()

    def __repr__(self) -> str:
        return "<DirectoryEntry>"


class LinkEntry(Entry):
    """A link whose target is relative to the directory containing the link.
    """

    __slots__ = "target",

    def __init__(self, target: str) -> None:
        self.target = target

    def __repr__(self) -> str:
        return f"<LinkEntry {self.target}>"


class RuntimeManifest:
    """The manifest of a runtime, with all the entries to install, the target is the
    channel that was requested to resolve this manifest.
    """

    __slots__ = "target", "version", "files"

    def __init__(self, target: str, version: RuntimeVersion, files: Dict[str, Entry]) -> None:
        self.target = target
        self.version = version
        self.files = files

    @classmethod
    def parse_files(cls, value: Any, path: str) -> Dict[str, Entry]:

        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")

        return {file: Entry.parse(entry, f"{path}/{file}") for file, entry in value.items()}

    def __repr__(self) -> str:
        return f"<RuntimeManifest {self.target} {self.version.name}>"


class DownloadProgressPayload:
    """Progress of a single file of a runtime, given to the file progress callback.
    """

    __slots__ = "url", "chunk_size_or_status", "progress", "total"

    def __init__(self, url: str, chunk_size_or_status: int, progress: int, total: int) -> None:
        self.url = url
        self.chunk_size_or_status = chunk_size_or_status
        self.progress = progress
        self.total = total

    def __repr__(self) -> str:
        return f"<DownloadProgressPayload {self.url} {self.progress}/{self.total}>"


class Watcher:
    """Base class for a watcher of the resolution and installation process.
    """

    def handle(self, event: Any) -> None:
        """Called when the watcher can handle the given event. Default implementation
        does nothing.
        """


class WatcherGroup(Watcher):
    """A watcher that forwards events to all of its children watchers.
    """

    def __init__(self) -> None:
        self.children = set()

    def add(self, watcher: Watcher) -> None:
        self.children.add(watcher)

    def remove(self, watcher: Watcher) -> None:
        self.children.remove(watcher)

    def handle(self, event: Any) -> None:
        for child in self.children:
            child.handle(event)


class SimpleWatcher(Watcher):
    """A watcher dispatching events to handlers given per event type.
    """

    def __init__(self, handlers: Dict[type, Callable[[Any], None]]) -> None:
        self.handlers = handlers

    def handle(self, event: Any) -> None:
        handler = self.handlers.get(type(event))
        if handler is not None:
            handler(event)


class RuntimePlatformResolvedEvent:
    __slots__ = "platform", "key"
    def __init__(self, platform: Platform, key: str) -> None:
        self.platform = platform
        self.key = key

class RuntimeManifestFetchedEvent:
    __slots__ = "target", "version", "files_count"
    def __init__(self, target: str, version: RuntimeVersion, files_count: int) -> None:
        self.target = target
        self.version = version
        self.files_count = files_count

class RuntimeInstallStartEvent:
    """Triggered before installing the files of a runtime, the size is the sum of all
    files' sizes to download, even those already installed.
    """
    __slots__ = "files_count", "others_count", "size"
    def __init__(self, files_count: int, others_count: int, size: int) -> None:
        self.files_count = files_count
        self.others_count = others_count
        self.size = size

class RuntimeInstallFilesDoneEvent:
    __slots__ = ()

class RuntimeInstallCompleteEvent:
    __slots__ = ()


class UnresolvablePlatformError(ValueError):
    """Raised when a platform has no runtimes in the index.
    """

    def __init__(self, platform: Platform) -> None:
        super().__init__(platform)
        self.platform = platform

    def __str__(self) -> str:
        return f"cannot resolve platform {self.platform}"


class NoRuntimeTargetError(Exception):
    """Raised when the index has no runtime for the requested channel on a platform.
    """

    def __init__(self, platform_key: str, target: str) -> None:
        super().__init__(platform_key, target)
        self.platform_key = platform_key
        self.target = target

    def __str__(self) -> str:
        return f"no runtime available for {self.target} on {self.platform_key}"


async def fetch_runtime_manifest(*,
    manifest_index: Optional[dict] = None,
    url: Optional[str] = None,
    api_host: Union[None, str, List[str]] = None,
    platform: Optional[Platform] = None,
    target: Optional[str] = None,
    fetch: Optional[Fetch] = None,
    watcher: Optional[Watcher] = None
) -> RuntimeManifest:
    """Fetch the manifest of a runtime for a platform.

    :param manifest_index: The runtime index, fetched from the given URL if not given.
    :param url: The URL of the runtime index, defaults to `DEFAULT_RUNTIME_ALL_URL`.
    :param api_host: Alternative host(s), only the first rewritten URL is fetched.
    :param platform: The platform to resolve, the running one by default.
    :param target: The runtime channel, defaults to `RuntimeTargetType.BETA`.
    :param fetch: Optional fetch function used instead of the default GET request.
    :param watcher: Optional watcher of the resolution events.
    :return: The manifest, its target is the requested channel.
    :raises UnresolvablePlatformError: If the platform has no key in the index.
    :raises NoRuntimeTargetError: If the channel has no runtime for this platform.
    """

    watcher = watcher or Watcher()

    if manifest_index is None:
        index_url = normalize_urls(url or DEFAULT_RUNTIME_ALL_URL, api_host)[0]
        manifest_index = await fetch_json(index_url, fetch)
        if not isinstance(manifest_index, dict):
            raise ValueError("runtime index: / must be an object")

    platform = platform or get_platform()
    target = target or RuntimeTargetType.BETA

    platform_key = resolve_platform_key(platform)
    watcher.handle(RuntimePlatformResolvedEvent(platform, platform_key))

    bucket = manifest_index.get(platform_key)
    targets = bucket.get(target) if isinstance(bucket, dict) else None
    if not isinstance(targets, list) or not len(targets):
        raise NoRuntimeTargetError(platform_key, target)

    runtime_target = RuntimeTarget.parse(targets[0], f"runtime index: /{platform_key}/{target}/0")

    manifest_url = normalize_urls(runtime_target.manifest.url, api_host)[0]
    manifest = await fetch_json(manifest_url, fetch)
    if not isinstance(manifest, dict):
        raise ValueError("runtime manifest: / must be an object")

    # The manifest's own target field is ignored, the requested one is kept.
    files = RuntimeManifest.parse_files(manifest.get("files"), "runtime manifest: /files")
    watcher.handle(RuntimeManifestFetchedEvent(target, runtime_target.version, len(files)))

    return RuntimeManifest(target, runtime_target.version, files)


Decompressor = Callable[[Path, Path], Optional[Awaitable[None]]]
FileProgressCallback = Callable[[FileEntry, DownloadProgressPayload], None]
ValidatorResolver = Callable[[ChecksumValidatorOptions], Validator]


async def install_runtime(manifest: RuntimeManifest, destination: Union[str, Path], *,
    api_host: Union[None, str, List[str]] = None,
    lzma: Union[bool, Decompressor] = False,
    checksum_validator_resolver: Optional[ValidatorResolver] = None,
    cancel: Optional[CancelToken] = None,
    on_file_progress: Optional[FileProgressCallback] = None,
    watcher: Optional[Watcher] = None,
    concurrency: Optional[int] = None,
    base_options: Optional[DownloadBaseOptions] = None
) -> None:
    """Install a runtime from its manifest into the destination directory.

    All files are downloaded concurrently first, then once all downloads are done,
    successfully or not, the directories and links are created. Each of these two
    batches raises a `BatchError` with all failures if any of its items has failed.

    :param manifest: The runtime manifest to install.
    :param destination: The directory where the runtime is installed.
    :param api_host: Alternative host(s) to try before the original URL of each file.
    :param lzma: True to download compressed files when available, a decompressor
    function can be given instead to also decompress them, like `decompress_lzma`.
    :param checksum_validator_resolver: Optional function returning the validator for
    an expected checksum, a `ChecksumValidator` is used by default.
    :param cancel: Optional token shared by all downloads to abort the installation,
    it is also cancelled if the task running the installation gets cancelled.
    :param on_file_progress: Optional callback for the progress of each file.
    :param watcher: Optional watcher of the installation events.
    :param concurrency: Maximum number of simultaneous downloads.
    :param base_options: Base options forwarded to every download.
    :raises BatchError: If any item of a batch has failed.
    """

    destination = Path(destination)
    watcher = watcher or Watcher()
    cancel = cancel or CancelToken()
    decompressor = lzma if callable(lzma) else None
    download_lzma = bool(lzma)

    files: List[Tuple[str, FileEntry]] = []
    others: List[Tuple[str, Entry]] = []
    for file, entry in manifest.files.items():
        if isinstance(entry, FileEntry):
            files.append((file, entry))
        else:
            others.append((file, entry))

    def choose_info(entry: FileEntry) -> DownloadInfo:
        if download_lzma and entry.lzma is not None:
            return entry.lzma
        return entry.raw

    size = sum(choose_info(entry).size for _, entry in files)
    watcher.handle(RuntimeInstallStartEvent(len(files), len(others), size))

    if concurrency is None:
        concurrency = (os.cpu_count() or 1) * 4
    semaphore = asyncio.Semaphore(max(1, min(concurrency, len(files) or 1)))

    async def install_file(file: str, entry: FileEntry) -> None:

        info = choose_info(entry)
        compressed = info is entry.lzma
        dst = destination / file
        if compressed:
            dst = dst.with_name(f"{dst.name}.lzma")

        checksum = ChecksumValidatorOptions("sha1", info.sha1)
        if checksum_validator_resolver is not None:
            validator = checksum_validator_resolver(checksum)
        else:
            validator = ChecksumValidator.from_options(checksum, info.size)

        progress_controller = None
        if on_file_progress is not None:
            callback = on_file_progress
            def progress_controller(url: str, chunk: int, progress: int, total: int) -> None:
                callback(entry, DownloadProgressPayload(url, chunk, progress, total))

        async with semaphore:
            await download(normalize_urls(info.url, api_host), dst,
                validator=validator,
                progress_controller=progress_controller,
                cancel=cancel,
                executable=entry.executable and not compressed,
                options=base_options)

        if compressed and decompressor is not None:
            decompressed_dst = dst.with_name(dst.name[:-len(".lzma")])
            ret = decompressor(dst, decompressed_dst)
            if inspect.isawaitable(ret):
                await ret
            if entry.executable:
                make_executable(decompressed_dst)

    async def install_other(file: str, entry: Entry) -> None:
        dst = destination / file
        if isinstance(entry, DirectoryEntry):
            await asyncio.to_thread(dst.mkdir, parents=True, exist_ok=True)
        elif isinstance(entry, LinkEntry):
            await asyncio.to_thread(_create_link, dst, entry.target)
        else:
            raise TypeError(f"unexpected entry type: {entry!r}")

    # The second batch starts once the first one has settled, even if it failed.
    errors: List[BatchError] = []

    try:
        await settled("install runtime files", [(file, install_file(file, entry)) for file, entry in files])
    except BatchError as e:
        errors.append(e)
    except asyncio.CancelledError:
        # Transfers run in threads that only stop through the token.
        cancel.cancel()
        raise

    watcher.handle(RuntimeInstallFilesDoneEvent())

    try:
        await settled("install runtime links", [(file, install_other(file, entry)) for file, entry in others])
    except BatchError as e:
        errors.append(e)

    if len(errors) == 1:
        raise errors[0]
    elif len(errors):
        raise BatchError("install runtime", [failure for error in errors for failure in error.failures])

    watcher.handle(RuntimeInstallCompleteEvent())


def _create_link(dst: Path, target: str) -> None:
    """Create a symbolic link, relative targets are resolved by the system from the
    directory of the link. Any error is ignored, links are optional.
    """
    try:
        dst.symlink_to(target)
    except OSError:
        pass


async def decompress_lzma(src: Path, dst: Path) -> None:
    """Decompressor for `install_runtime` that decompresses LZMA (or XZ) files.
    """
    await asyncio.to_thread(_decompress_lzma, src, dst)


def _decompress_lzma(src: Path, dst: Path) -> None:
    import shutil
    tmp_dst = dst.with_name(f"{dst.name}.part")
    with _lzma.open(src, "rb", format=_lzma.FORMAT_AUTO) as src_fp:
        with tmp_dst.open("wb") as dst_fp:
            shutil.copyfileobj(src_fp, dst_fp)
    os.replace(tmp_dst, dst)
