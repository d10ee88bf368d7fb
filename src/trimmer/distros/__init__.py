"""
Distribution plugins.

Each plugin ships builds to one destination: a script, an archive, a server,
itch.io, Steam or Apple's notarization service. Meta distros combine other
distros into a single run.
"""

from .build_info import BuildVersion, read_build_version
from .factory import DISTRO_KINDS, accepted_settings, create_distro, create_distros, get_distro_class
from .itch import ItchDistro
from .meta import MetaDistro
from .notarization import NotarizationDistro
from .script import ScriptDistro
from .steam import SteamDistro, find_steam_cmd
from .upload import UploadDistro
from .zip import CompressionFormat, ZipDistro

__all__ = [
    "BuildVersion",
    "CompressionFormat",
    "DISTRO_KINDS",
    "ItchDistro",
    "MetaDistro",
    "NotarizationDistro",
    "ScriptDistro",
    "SteamDistro",
    "UploadDistro",
    "ZipDistro",
    "accepted_settings",
    "create_distro",
    "create_distros",
    "find_steam_cmd",
    "get_distro_class",
    "read_build_version",
]
