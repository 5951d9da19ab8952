from argparse import ArgumentParser, ArgumentTypeError

from mcruntime.jvm import Platform
from mcruntime.user import AUTH_SERVER_URL

from .output import Output
from .lang import get as _

from typing import Optional, List


# The following classes are only used for type checking and represent a typed namespace
# as produced by the arguments registered to the argument parser.

class RootNs:
    timeout: Optional[float]
    out_kind: str
    # Initialized by main function after argument parsing.
    out: Output

class JvmNs(RootNs):
    platform: Optional[Platform]
    target: Optional[str]
    api_host: Optional[List[str]]

class JvmInstallNs(JvmNs):
    lzma: bool
    concurrency: Optional[int]
    dir: str

class UserLoginNs(RootNs):
    auth_host: str
    username: str

class UserProfileNs(RootNs):
    name: str

class UserOfflineNs(RootNs):
    username: str


def register_arguments() -> ArgumentParser:
    parser = ArgumentParser(allow_abbrev=False, prog="mcruntime", description=_("args"))
    parser.add_argument("--timeout", help=_("args.timeout"), type=float)
    parser.add_argument("--output", help=_("args.output"), dest="out_kind", choices=get_outputs(), default="human-color")
    register_subcommands(parser.add_subparsers(title="subcommands", dest="subcommand"))
    return parser


def register_subcommands(subparsers):
    register_jvm_arguments(subparsers.add_parser("jvm", help=_("args.jvm")))
    register_user_arguments(subparsers.add_parser("user", help=_("args.user")))


def register_common_jvm_arguments(parser: ArgumentParser):
    parser.add_argument("--platform", help=_("args.jvm.platform"), type=platform_from_str)
    parser.add_argument("--target", help=_("args.jvm.target"))
    parser.add_argument("--api-host", help=_("args.jvm.api_host"), action="append", metavar="HOST")


def register_jvm_arguments(parser: ArgumentParser):
    subparsers = parser.add_subparsers(title="subcommands", dest="jvm_subcommand")
    subparsers.required = True
    show_parser = subparsers.add_parser("show", help=_("args.jvm.show"))
    register_common_jvm_arguments(show_parser)
    install_parser = subparsers.add_parser("install", help=_("args.jvm.install"))
    register_common_jvm_arguments(install_parser)
    install_parser.add_argument("--lzma", help=_("args.jvm.install.lzma"), action="store_true")
    install_parser.add_argument("--concurrency", help=_("args.jvm.install.concurrency"), type=int)
    install_parser.add_argument("dir", help=_("args.jvm.install.dir"))


def register_user_arguments(parser: ArgumentParser):
    subparsers = parser.add_subparsers(title="subcommands", dest="user_subcommand")
    subparsers.required = True
    login_parser = subparsers.add_parser("login", help=_("args.user.login"))
    login_parser.add_argument("--auth-host", help=_("args.user.auth_host"), default=AUTH_SERVER_URL)
    login_parser.add_argument("username")
    profile_parser = subparsers.add_parser("profile", help=_("args.user.profile"))
    profile_parser.add_argument("name")
    offline_parser = subparsers.add_parser("offline", help=_("args.user.offline"))
    offline_parser.add_argument("username")


def get_outputs() -> List[str]:
    return ["human-color", "human", "machine"]


def platform_from_str(s: str) -> Platform:
    try:
        return Platform.from_str(s)
    except ValueError as e:
        raise ArgumentTypeError(str(e))
