"""
End-to-end tests for the trimmer-distro command line.
"""

import argparse
import logging
import os
import stat

import pytest
import toml

from trimmer.cli.main import (
    EXIT_CANCELLED,
    EXIT_FAILURE,
    EXIT_SUCCESS,
    build_parser,
    exit_code_for,
    main_cli,
    parse_build_argument,
)
from trimmer.models import BuildTarget, DistroState


@pytest.fixture(autouse=True)
def restore_root_log_level():
    """The CLI sets the root log level from the configuration."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)


@pytest.fixture
def script_config(temp_dir):
    """Configuration with script distros writing to a file."""
    output = temp_dir / "output.txt"
    script = temp_dir / "record.sh"
    script.write_text(f'#!/bin/sh\necho "$@" >> {output}\n')
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    failing = temp_dir / "fail.sh"
    failing.write_text("#!/bin/sh\nexit 3\n")
    failing.chmod(failing.stat().st_mode | stat.S_IXUSR)

    (temp_dir / "Builds" / "Linux").mkdir(parents=True)
    (temp_dir / "Builds" / "Mac").mkdir(parents=True)

    data = {
        "runner": {"temp_root": "tmp", "log_level": "DEBUG"},
        "distros": {
            "record": {
                "kind": "script",
                "script_path": str(script),
                "arguments": "{targets}",
                "builds": [{"target": "StandaloneLinux64", "path": "Builds/Linux"}],
            },
            "broken": {
                "kind": "script",
                "script_path": str(failing),
                "builds": [{"target": "StandaloneLinux64", "path": "Builds/Linux"}],
            },
            "typo": {"kind": "script", "script": "record.sh"},
        },
    }
    config_path = temp_dir / "trimmer.toml"
    with open(config_path, "w") as f:
        toml.dump(data, f)
    return config_path, output


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main_cli(argv)
    return exc_info.value.code


@pytest.mark.e2e
class TestArguments:

    def test_parse_build_argument(self):
        build = parse_build_argument("standaloneosx=Builds/Mac/Game.app")
        assert build.target is BuildTarget.StandaloneOSX
        assert str(build.path) == "Builds/Mac/Game.app"

    @pytest.mark.parametrize("value", ["Builds/Mac", "=Builds/Mac", "StandaloneOSX=", "Dreamcast=Builds"])
    def test_parse_invalid_build_argument(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_build_argument(value)

    def test_parser(self):
        args = build_parser().parse_args(
            ["-c", "ci.toml", "--log-level", "debug", "run", "nightly", "-b", "StandaloneLinux64=a", "-b",
             "StandaloneOSX=b"]
        )
        assert str(args.config) == "ci.toml"
        assert args.log_level == "DEBUG"
        assert args.name == "nightly"
        assert [b.target for b in args.builds] == [BuildTarget.StandaloneLinux64, BuildTarget.StandaloneOSX]

    def test_exit_codes(self):
        assert exit_code_for(DistroState.SUCCEEDED) == EXIT_SUCCESS
        assert exit_code_for(DistroState.FAILED) == EXIT_FAILURE
        assert exit_code_for(DistroState.CANCELLED) == EXIT_CANCELLED == 130


@pytest.mark.e2e
@pytest.mark.skipif(os.name != "posix", reason="scripts are shell scripts")
class TestCommands:
    """Test cases for the list and run commands."""

    def test_list(self, script_config, capsys):
        config_path, _ = script_config
        assert _run(["-c", str(config_path), "list"]) == EXIT_SUCCESS

        lines = capsys.readouterr().out.splitlines()
        assert "record\tscript\tStandaloneLinux64" in lines
        assert "typo\tscript\tno builds" in lines

    def test_run_configured_builds(self, script_config, temp_dir):
        config_path, output = script_config
        assert _run(["-c", str(config_path), "run", "record"]) == EXIT_SUCCESS
        assert output.read_text().strip() == "StandaloneLinux64"
        assert list((temp_dir / "tmp").iterdir()) == []

    def test_run_with_build_arguments(self, script_config, temp_dir):
        config_path, output = script_config
        code = _run(["-c", str(config_path), "run", "record",
                     "-b", f"StandaloneOSX={temp_dir / 'Builds' / 'Mac'}",
                     "-b", f"StandaloneLinux64={temp_dir / 'Builds' / 'Linux'}"])
        assert code == EXIT_SUCCESS
        assert output.read_text().strip() == "StandaloneOSX StandaloneLinux64"

    def test_failed_run(self, script_config):
        config_path, _ = script_config
        assert _run(["-c", str(config_path), "run", "broken"]) == EXIT_FAILURE

    def test_unknown_distro(self, script_config, caplog):
        config_path, _ = script_config
        assert _run(["-c", str(config_path), "run", "missing"]) == EXIT_FAILURE
        assert "Distro 'missing' not found" in caplog.text

    def test_unknown_setting(self, script_config):
        config_path, _ = script_config
        assert _run(["-c", str(config_path), "run", "typo"]) == EXIT_FAILURE

    def test_missing_config(self, temp_dir):
        assert _run(["-c", str(temp_dir / "missing.toml"), "list"]) == EXIT_FAILURE

    def test_invalid_config(self, temp_dir):
        config_path = temp_dir / "trimmer.toml"
        config_path.write_text('[distros.zip]\nkind = "rar"\n')
        assert _run(["-c", str(config_path), "list"]) == EXIT_FAILURE
