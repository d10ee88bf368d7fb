"""
Configuration validation utilities.

This module turns the raw tables of the configuration file into validated
configuration objects: the runner settings, the credentials settings and
the distros with their builds.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..distros import DISTRO_KINDS
from ..models.config import CredentialsConfig, DistroConfig, RunnerConfig
from ..models.runtime import BuildPath, BuildTarget
from ..system import get_host_platform
from ..validation import (
    ValidationError,
    validate_distro_name,
    validate_enum_choice,
    validate_exit_codes,
    validate_non_empty_string,
    validate_positive_float,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _resolve_path(value: str, base_dir: Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def validate_runner_config(runner_data: Dict[str, Any], base_dir: Optional[Path] = None) -> RunnerConfig:
    """
    Validate and create a RunnerConfig from the `[runner]` table.

    Relative paths are resolved against the directory of the configuration
    file. Without configured cancellation exit codes, the codes of the host
    platform are used.

    Args:
        runner_data: Raw runner configuration from TOML
        base_dir: Directory relative paths are resolved against

    Returns:
        Validated RunnerConfig instance

    Raises:
        ValidationError: If validation fails
    """
    base_dir = base_dir or Path.cwd()

    try:
        if "cancellation_exit_codes" in runner_data:
            cancellation_exit_codes = frozenset(validate_exit_codes(
                runner_data["cancellation_exit_codes"],
                field_name="runner.cancellation_exit_codes",
            ))
        else:
            cancellation_exit_codes = get_host_platform().cancellation_exit_codes

        project_dir = _resolve_path(
            validate_non_empty_string(runner_data.get("project_dir", "."), "runner.project_dir"),
            base_dir,
        )

        temp_root_value = runner_data.get("temp_root", "")
        if not isinstance(temp_root_value, str):
            raise ValidationError("runner.temp_root must be a string", field_name="runner.temp_root",
                                  value=temp_root_value)
        temp_root = _resolve_path(temp_root_value, base_dir) if temp_root_value.strip() else None

        log_level = validate_enum_choice(
            runner_data.get("log_level", "INFO"),
            LOG_LEVELS,
            field_name="runner.log_level",
            case_sensitive=False,
        )

        timeouts = {}
        for key in ("termination_graceful_timeout", "termination_interrupt_timeout", "termination_force_timeout"):
            if key in runner_data:
                timeouts[key] = validate_positive_float(
                    runner_data[key], min_value=0.0, max_value=300.0, field_name=f"runner.{key}"
                )

        if "status_check_interval" in runner_data:
            timeouts["status_check_interval"] = validate_positive_float(
                runner_data["status_check_interval"],
                min_value=0.1,
                max_value=3600.0,
                field_name="runner.status_check_interval",
            )

        return RunnerConfig(
            cancellation_exit_codes=cancellation_exit_codes,
            project_dir=project_dir,
            temp_root=temp_root,
            log_level=log_level,
            **timeouts,
        )

    except ValidationError as e:
        logger.error(f"Runner configuration validation failed: {e}")
        raise


def validate_credentials_config(credentials_data: Dict[str, Any]) -> CredentialsConfig:
    """
    Validate and create a CredentialsConfig from the `[credentials]` table.

    Raises:
        ValidationError: If validation fails
    """
    env_prefix = credentials_data.get("env_prefix", "TRIMMER_")
    if not isinstance(env_prefix, str):
        raise ValidationError("credentials.env_prefix must be a string",
                              field_name="credentials.env_prefix", value=env_prefix)
    return CredentialsConfig(env_prefix=env_prefix)


def validate_builds(builds_data: Any, base_dir: Path, field_name: str = "builds") -> List[BuildPath]:
    """
    Validate a list of build tables with `target`, `path` and optional `profile`.

    Raises:
        ValidationError: If a build is invalid
    """
    if not isinstance(builds_data, list):
        raise ValidationError(f"{field_name} must be a list of tables", field_name=field_name, value=builds_data)

    builds = []
    for i, build_data in enumerate(builds_data):
        if not isinstance(build_data, dict):
            raise ValidationError(f"{field_name}[{i}] must be a table", field_name=field_name, value=build_data)

        unknown = set(build_data) - {"target", "path", "profile"}
        if unknown:
            raise ValidationError(f"{field_name}[{i}] has unknown keys: {', '.join(sorted(unknown))}",
                                  field_name=field_name, value=build_data)

        target_name = validate_non_empty_string(build_data.get("target"), f"{field_name}[{i}].target")
        try:
            target = BuildTarget.parse(target_name)
        except ValueError as e:
            raise ValidationError(f"{field_name}[{i}].target: {e}", field_name=f"{field_name}[{i}].target",
                                  value=target_name)

        path = validate_non_empty_string(build_data.get("path"), f"{field_name}[{i}].path")
        profile = build_data.get("profile")
        builds.append(BuildPath(target, _resolve_path(path, base_dir), profile))
    return builds


def validate_distros_config(distros_data: Dict[str, Any], base_dir: Optional[Path] = None) -> Dict[str, DistroConfig]:
    """
    Validate the `[distros.<name>]` tables.

    Settings other than `kind` and `builds` are kept as-is and checked
    against the plugin when the distro is created.

    Args:
        distros_data: Raw distros tables by name
        base_dir: Directory relative build paths are resolved against

    Returns:
        DistroConfig instances by name, in file order

    Raises:
        ValidationError: If validation fails
    """
    base_dir = base_dir or Path.cwd()

    if not isinstance(distros_data, dict):
        raise ValidationError("distros must be a table of distro tables", field_name="distros")

    distros: Dict[str, DistroConfig] = {}
    for name, distro_data in distros_data.items():
        try:
            validate_distro_name(name, existing_names=list(distros), field_name="distros name")
            if not isinstance(distro_data, dict):
                raise ValidationError(f"distros.{name} must be a table", field_name=f"distros.{name}")

            settings = dict(distro_data)
            kind = validate_enum_choice(
                settings.pop("kind", None),
                sorted(DISTRO_KINDS),
                field_name=f"distros.{name}.kind",
            )
            builds = validate_builds(settings.pop("builds", []), base_dir, field_name=f"distros.{name}.builds")

            distros[name] = DistroConfig(name=name, kind=kind, settings=settings, builds=builds)
            logger.debug(f"Validated {kind} distro '{name}' with {len(builds)} build(s)")

        except ValidationError as e:
            logger.error(f"Distro configuration validation failed: {e}")
            raise

    return distros
