"""CLI languages management.
"""

from mcruntime.download import DownloadError

from typing import Optional


def get_raw(key: str, kwargs: Optional[dict]) -> str:
    """Get a message translated using the given keyword formatting arguments.

    :return: Translated message, or the key itself if not found.
    """
    try:
        return lang[key].format_map(kwargs or {})
    except KeyError:
        return key


def get(key: str, **kwargs) -> str:
    return get_raw(key, kwargs)


lang = {
    # Args root
    "args": "Install Mojang's Java runtimes and manage Mojang users.",
    "args.timeout": "Set a global timeout (in decimal seconds) for network requests.",
    "args.output": "Set the output format, defaults to human-color.",
    # Args jvm
    "args.jvm": "Resolve and install Mojang's Java runtimes.",
    "args.jvm.show": "Show the runtime resolved for a platform and a channel.",
    "args.jvm.install": "Install the runtime resolved for a platform and a channel.",
    "args.jvm.platform": "The platform as 'name-arch', like 'linux-x64', the running one by default.",
    "args.jvm.target": "The runtime channel, like 'jre-legacy' or 'java-runtime-beta' (default).",
    "args.jvm.api_host": "An alternative host to download from, can be given multiple times.",
    "args.jvm.install.dir": "The directory where the runtime is installed.",
    "args.jvm.install.lzma": "Download compressed files when available and decompress them.",
    "args.jvm.install.concurrency": "Maximum number of simultaneous downloads.",
    # Args user
    "args.user": "Mojang users utilities.",
    "args.user.auth_host": "The Yggdrasil authentication server.",
    "args.user.login": "Authenticate with a Yggdrasil server and show the session.",
    "args.user.profile": "Show the profile and skin of a player.",
    "args.user.offline": "Show the offline UUID of a username.",
    # Common
    "error.value": "{message}",
    "error.batch": "{label}: {count} item(s) failed",
    "error.batch.item": "  {item}: {message}",
    "error.http": "HTTP error: {message}",
    "error.auth": "Authentication error: {message}",
    "error.platform": "Cannot resolve a runtime for platform {platform}.",
    "error.no_target": "No runtime {target} available for {platform_key}.",
    "error.keyboard_interrupt": "Interrupted.",
    "error.aborted": "Installation aborted.",
    "error.os": "System error: {message}",
    # Command jvm
    "jvm.resolving": "Resolving runtime...",
    "jvm.platform_resolved": "Resolved platform {platform} as {key}",
    "jvm.manifest_fetched": "Runtime {target} {version} ({count} entries)",
    "jvm.install.start": "Installing {files_count} files ({size})...",
    "jvm.install.progress": "Installing: {count}/{total_count} files {size}/{total_size}",
    "jvm.install.links": "Creating {count} directories and links...",
    "jvm.install.done": "Installed runtime in {dir}",
    "jvm.show.target": "Target",
    "jvm.show.version": "Version",
    "jvm.show.files": "Files",
    "jvm.show.directories": "Directories",
    "jvm.show.links": "Links",
    "jvm.show.size": "Size",
    # Command user
    "user.login.password": "Password: ",
    "user.login.authenticating": "Authenticating {username}...",
    "user.login.authenticated": "Authenticated {username} ({uuid})",
    "user.profile.looking": "Looking for profile {name}...",
    "user.profile.not_found": "Profile {name} not found.",
    "user.profile.found": "Found profile {name} ({id})",
    "user.profile.skin": "Skin",
    "user.profile.model": "Model",
    "user.profile.cape": "Cape",
    "user.offline": "Offline UUID of {username}: {uuid}",
    # Download errors
    f"download.error.{DownloadError.CONNECTION}": "Connection error",
    f"download.error.{DownloadError.NOT_FOUND}": "Not found",
    f"download.error.{DownloadError.INVALID_SIZE}": "Invalid size",
    f"download.error.{DownloadError.INVALID_CHECKSUM}": "Invalid checksum",
}
