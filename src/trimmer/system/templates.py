"""
Path template substitution used by plugins before invoking external tools.

Two syntaxes are supported:

- `{{Name}}` path variables in tool scripts (e.g. Steam VDF files). Names are
  build targets (replaced with the base path of that target's build) or one of
  the given fixed variables (e.g. `project`, `scripts`).
- `{name}` argument variables in script command lines.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Set, Tuple

from ..models import BuildPath, BuildTarget
from ..validation import ConfigurationError

logger = logging.getLogger(__name__)

PATH_VARIABLE_PATTERN = re.compile(r"{{([^}]*)}}")


def substitute_path_variables(
    text: str,
    build_paths: Iterable[BuildPath],
    variables: Optional[Mapping[str, str]] = None,
    source: Optional[str] = None,
    origin: Optional[str] = None,
) -> Tuple[str, Set[BuildTarget]]:
    """
    Replace `{{...}}` path variables in a script.

    Variable names are matched case-insensitively. Fixed variables take
    precedence over build targets.

    Args:
        text: Script contents
        build_paths: Builds available for substitution
        variables: Fixed variables by lower-case name
        source: Name of the plugin, used in error messages
        origin: Name of the processed file, used in error messages

    Returns:
        The substituted text and the set of targets that were referenced

    Raises:
        ConfigurationError: If a variable names an unknown target or a
            target that has no build
    """
    builds = list(build_paths)
    fixed = {key.lower(): value for key, value in (variables or {}).items()}
    used: Set[BuildTarget] = set()
    where = f" in {origin}" if origin else ""

    def replace(match: "re.Match[str]") -> str:
        name = match.group(1).strip()
        if name.lower() in fixed:
            return fixed[name.lower()]

        try:
            target = BuildTarget.parse(name)
        except ValueError:
            raise ConfigurationError(
                f"Invalid build target path variable '{name}'{where}", source=source
            )

        for build in builds:
            if build.target is target:
                used.add(target)
                return str(build.base_path.resolve())

        raise ConfigurationError(
            f"Build target '{name}' not part of the given builds{where}", source=source
        )

    return PATH_VARIABLE_PATTERN.sub(replace, text), used


def substitute_file_variables(
    source_dir: Path,
    target_dir: Path,
    build_paths: Iterable[BuildPath],
    variables: Optional[Mapping[str, str]] = None,
    extension: str = ".vdf",
    source: Optional[str] = None,
) -> Set[BuildTarget]:
    """
    Substitute path variables in all files with the given extension of a
    directory, writing the results under the same name to `target_dir`.

    Returns:
        The set of targets that were referenced by any of the files
    """
    builds = list(build_paths)
    used: Set[BuildTarget] = set()
    for file in sorted(Path(source_dir).iterdir()):
        if not file.is_file() or file.suffix.lower() != extension:
            continue
        contents, file_used = substitute_path_variables(
            file.read_text(encoding="utf-8"), builds, variables, source=source, origin=str(file)
        )
        used |= file_used
        (Path(target_dir) / file.name).write_text(contents, encoding="utf-8")
        logger.debug(f"Substituted path variables in {file.name}")
    return used


def replace_variables(text: str, variables: Dict[str, str]) -> str:
    """Replace `{name}` placeholders, leaving unknown placeholders untouched."""
    for name, value in variables.items():
        text = text.replace("{" + name + "}", value)
    return text
