"""
Host system integration: platform strategies, command lines, templates
and credentials.
"""

from .commands import (
    find_first_executable,
    join_arguments,
    quote,
    resolve_executable,
    split_arguments,
)
from .credentials import (
    CredentialStore,
    EnvironmentCredentialStore,
    Login,
    MemoryCredentialStore,
)
from .platforms import PLATFORMS, HostPlatform, get_host_platform, platform_key
from .templates import (
    PATH_VARIABLE_PATTERN,
    replace_variables,
    substitute_file_variables,
    substitute_path_variables,
)

__all__ = [
    "CredentialStore",
    "EnvironmentCredentialStore",
    "HostPlatform",
    "Login",
    "MemoryCredentialStore",
    "PATH_VARIABLE_PATTERN",
    "PLATFORMS",
    "find_first_executable",
    "get_host_platform",
    "join_arguments",
    "platform_key",
    "quote",
    "replace_variables",
    "resolve_executable",
    "split_arguments",
    "substitute_file_variables",
    "substitute_path_variables",
]
