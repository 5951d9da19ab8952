"""Main entry point of the CLI.
"""

from pathlib import Path
import asyncio
import socket
import sys

from .parse import register_arguments, RootNs, JvmNs, JvmInstallNs, UserLoginNs, \
    UserProfileNs, UserOfflineNs
from .output import Output, HumanOutput, MachineOutput
from .util import format_size
from .lang import get as _

from mcruntime.download import DownloadError, DownloadAbortedError
from mcruntime.http import HttpError
from mcruntime.util import BatchError
from mcruntime.user import YggdrasilClient, ProfileService, AuthError, OfflineSession
from mcruntime.jvm import fetch_runtime_manifest, install_runtime, decompress_lzma, \
    RuntimeManifest, FileEntry, DirectoryEntry, LinkEntry, DownloadProgressPayload, \
    SimpleWatcher, RuntimePlatformResolvedEvent, RuntimeManifestFetchedEvent, \
    RuntimeInstallStartEvent, RuntimeInstallFilesDoneEvent, \
    UnresolvablePlatformError, NoRuntimeTargetError

from typing import cast, Optional, List, Union, Dict, Callable, Any


EXIT_OK = 0
EXIT_FAILURE = 1

CommandHandler = Callable[[Any], Any]
CommandTree = Dict[str, Union[CommandHandler, "CommandTree"]]


def main(args: Optional[List[str]] = None):
    """Main entry point of the CLI. This function parses the input arguments and try to
    find a command handler to dispatch to. These command handlers are specified by the
    `get_command_handlers` function.
    """

    parser = register_arguments()
    ns: RootNs = cast(RootNs, parser.parse_args(args if args is not None else sys.argv[1:]))

    ns.out = get_output(ns.out_kind)
    socket.setdefaulttimeout(ns.timeout)

    # Find the command handler and run it.
    command_handlers = get_command_handlers()
    command_attr = "subcommand"
    while True:
        command = getattr(ns, command_attr)
        handler = command_handlers.get(command)
        if handler is None:
            parser.print_help()
            sys.exit(EXIT_FAILURE)
        elif callable(handler):
            sys.exit(cmd(handler, ns))
        elif isinstance(handler, dict):
            command_attr = f"{command}_{command_attr}"
            command_handlers = handler


def get_output(kind: str) -> Output:
    """Internal function that construct the output depending on its kind.
    The kind is constrained by choices set to the arguments parser.
    """

    if kind == "human-color":
        return HumanOutput(True)
    elif kind == "human":
        return HumanOutput(False)
    elif kind == "machine":
        return MachineOutput()
    else:
        raise ValueError()


def get_command_handlers() -> CommandTree:
    """Internal function returns the tree of command handlers for each subcommand
    of the CLI argument parser.
    """

    return {
        "jvm": {
            "show": cmd_jvm_show,
            "install": cmd_jvm_install,
        },
        "user": {
            "login": cmd_user_login,
            "profile": cmd_user_profile,
            "offline": cmd_user_offline,
        },
    }


def cmd(handler: CommandHandler, ns: RootNs) -> int:
    """Generic command handler that launch the given handler with the given namespace,
    it handles error in order to pretty print them.

    :return: The exit code.
    """

    try:
        return handler(ns)

    except KeyboardInterrupt:
        ns.out.finish()
        ns.out.task("FAILED", "error.keyboard_interrupt")

    except UnresolvablePlatformError as error:
        ns.out.task("FAILED", "error.platform", platform=str(error.platform))

    except NoRuntimeTargetError as error:
        ns.out.task("FAILED", "error.no_target", target=error.target, platform_key=error.platform_key)

    except BatchError as error:
        ns.out.task("FAILED", "error.batch", label=error.label, count=len(error.failures))
        for item, cause in error.failures:
            ns.out.finish()
            ns.out.task(None, "error.batch.item", item=item, message=format_error(cause))

    except AuthError as error:
        ns.out.task("FAILED", "error.auth", message=str(error))

    except HttpError as error:
        ns.out.task("FAILED", "error.http", message=str(error))

    except DownloadAbortedError:
        ns.out.finish()
        ns.out.task("FAILED", "error.aborted")

    except OSError as error:
        ns.out.task("FAILED", "error.os", message=str(error))

    except ValueError as error:
        ns.out.task("FAILED", "error.value", message=str(error))

    ns.out.finish()
    return EXIT_FAILURE


def format_error(error: BaseException) -> str:
    if isinstance(error, DownloadError) and len(error.errors):
        url, code, _origin = error.errors[-1]
        return f"{_(f'download.error.{code}')} ({url})"
    return str(error)


def new_jvm_watcher(ns: RootNs) -> SimpleWatcher:

    def platform_resolved(e: RuntimePlatformResolvedEvent):
        ns.out.task("INFO", "jvm.platform_resolved", platform=str(e.platform), key=e.key)
        ns.out.finish()

    def manifest_fetched(e: RuntimeManifestFetchedEvent):
        ns.out.task("OK", "jvm.manifest_fetched", target=e.target, version=e.version.name, count=e.files_count)
        ns.out.finish()

    return SimpleWatcher({
        RuntimePlatformResolvedEvent: platform_resolved,
        RuntimeManifestFetchedEvent: manifest_fetched,
    })


def fetch_manifest(ns: JvmNs, watcher: SimpleWatcher) -> RuntimeManifest:
    ns.out.task("", "jvm.resolving")
    return asyncio.run(fetch_runtime_manifest(
        api_host=ns.api_host,
        platform=ns.platform,
        target=ns.target,
        watcher=watcher))


def cmd_jvm_show(ns: JvmNs) -> int:

    manifest = fetch_manifest(ns, new_jvm_watcher(ns))

    counts = {FileEntry: 0, DirectoryEntry: 0, LinkEntry: 0}
    size = 0
    for entry in manifest.files.values():
        counts[type(entry)] += 1
        if isinstance(entry, FileEntry):
            size += entry.raw.size

    table = ns.out.table()
    table.add(_("jvm.show.target"), manifest.target)
    table.add(_("jvm.show.version"), manifest.version.name)
    table.separator()
    table.add(_("jvm.show.files"), counts[FileEntry])
    table.add(_("jvm.show.directories"), counts[DirectoryEntry])
    table.add(_("jvm.show.links"), counts[LinkEntry])
    table.add(_("jvm.show.size"), format_size(size))
    table.print()

    return EXIT_OK


def cmd_jvm_install(ns: JvmInstallNs) -> int:

    watcher = new_jvm_watcher(ns)
    manifest = fetch_manifest(ns, watcher)
    dst = Path(ns.dir)

    # Only accessed from the event loop thread.
    total = {"count": 0, "size": 0}
    done = {"count": 0, "size": 0}

    def install_start(e: RuntimeInstallStartEvent):
        total["count"] = e.files_count
        total["size"] = e.size
        ns.out.task("", "jvm.install.start", files_count=e.files_count, size=format_size(e.size))

    def files_done(e: RuntimeInstallFilesDoneEvent):
        ns.out.task("", "jvm.install.links", count=len(manifest.files) - total["count"])

    def file_progress(entry: FileEntry, payload: DownloadProgressPayload):
        if payload.chunk_size_or_status > 0:
            done["size"] += payload.chunk_size_or_status
        elif payload.chunk_size_or_status < 0:
            done["size"] += payload.progress
        if payload.chunk_size_or_status < 0 or (payload.total and payload.progress >= payload.total):
            done["count"] += 1
        ns.out.task("", "jvm.install.progress",
            count=done["count"],
            total_count=total["count"],
            size=format_size(done["size"]),
            total_size=format_size(total["size"]))

    watcher.handlers[RuntimeInstallStartEvent] = install_start
    watcher.handlers[RuntimeInstallFilesDoneEvent] = files_done

    asyncio.run(install_runtime(manifest, dst,
        api_host=ns.api_host,
        lzma=decompress_lzma if ns.lzma else False,
        on_file_progress=file_progress,
        watcher=watcher,
        concurrency=ns.concurrency))

    ns.out.task("OK", "jvm.install.done", dir=str(dst))
    ns.out.finish()
    return EXIT_OK


def cmd_user_login(ns: UserLoginNs) -> int:

    import getpass
    password = getpass.getpass(_("user.login.password"))

    ns.out.task("", "user.login.authenticating", username=ns.username)
    session = YggdrasilClient(ns.auth_host).authenticate(ns.username, password)
    ns.out.task("OK", "user.login.authenticated", username=session.username, uuid=session.uuid)
    ns.out.finish()
    return EXIT_OK


def cmd_user_profile(ns: UserProfileNs) -> int:

    ns.out.task("", "user.profile.looking", name=ns.name)
    profile = ProfileService().lookup_by_name(ns.name)
    if profile is None:
        ns.out.task("FAILED", "user.profile.not_found", name=ns.name)
        ns.out.finish()
        return EXIT_FAILURE

    ns.out.task("OK", "user.profile.found", name=profile.name, id=profile.id)
    ns.out.finish()

    skin = profile.skin
    cape = profile.cape
    table = ns.out.table()
    table.add(_("user.profile.skin"), "" if skin is None else skin.url)
    table.add(_("user.profile.model"), "" if skin is None else ("slim" if skin.slim else "classic"))
    table.add(_("user.profile.cape"), "" if cape is None else cape.url)
    table.print()

    return EXIT_OK


def cmd_user_offline(ns: UserOfflineNs) -> int:
    session = OfflineSession(ns.username)
    ns.out.task("OK", "user.offline", username=session.username, uuid=session.uuid)
    ns.out.finish()
    return EXIT_OK
