"""Main module for mcruntime API.

The package is split in small modules: `jvm` resolves and installs Mojang's official Java
runtimes, `download` and `http` provide the networking primitives it relies on, and
`user` provides Mojang/Yggdrasil authentication and profile utilities.
"""

LAUNCHER_NAME = "mcruntime"
LAUNCHER_VERSION = "1.0.0"
LAUNCHER_AUTHORS = ["Théo Rozier <contact@theorozier.fr>", "Github contributors"]
LAUNCHER_COPYRIGHT = "mcruntime  Copyright (C) 2021-2023  Théo Rozier"
LAUNCHER_URL = "https://github.com/mindstorm38/portablemc"
