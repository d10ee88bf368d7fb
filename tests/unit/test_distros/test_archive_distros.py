"""
Unit tests for the zip distro and the build info file.

7-Zip is replaced by a shell script that records its arguments and
creates the requested archive.
"""

import json
import logging
import os

import pytest

from trimmer.distros import BuildVersion, CompressionFormat, ZipDistro, read_build_version
from trimmer.distros.zip import is_ignored
from trimmer.models import BuildPath, BuildTarget
from trimmer.tasks import TaskToken
from trimmer.validation import ConfigurationError

posix_only = pytest.mark.skipif(os.name != "posix", reason="fake tools are shell scripts")

FAKE_SEVEN_ZIP = 'if [ "$1" = "a" ]; then touch "$2"; fi'


def _write_build_info(build_path, version):
    data = {"version": version} if version is not None else {"name": "Game"}
    (build_path.base_path / "build.json").write_text(json.dumps(data))


@pytest.fixture
def seven_zip(fake_tool):
    return fake_tool("7z", FAKE_SEVEN_ZIP)


@pytest.fixture
def seven_zip_log(temp_dir):
    def _read():
        log = temp_dir / "tools" / "7z.log"
        return log.read_text().splitlines() if log.exists() else []
    return _read


@pytest.mark.unit
class TestBuildInfo:
    """Test cases for reading build.json."""

    def test_no_build_info(self, make_build):
        assert read_build_version(make_build().path) is None

    def test_read_version(self, make_build):
        build = make_build()
        _write_build_info(build, {"major": 1, "minor": 2, "patch": 3, "build": 45})

        version = read_build_version(build.path)
        assert version == BuildVersion(1, 2, 3, 45)
        assert version.is_defined
        assert version.major_minor_patch == "1.2.3"
        assert version.major_minor_patch_build == "1.2.3+45"

    def test_read_version_next_to_file_build(self, make_build):
        build = make_build()
        _write_build_info(build, {"major": 2})
        assert read_build_version(build.path / "game.x86_64") == BuildVersion(2, 0, 0, 0)

    def test_missing_version_is_undefined(self, make_build):
        build = make_build()
        _write_build_info(build, None)
        version = read_build_version(build.path)
        assert version is not None
        assert not version.is_defined

    def test_malformed_build_info(self, make_build, caplog):
        build = make_build()
        (build.path / "build.json").write_text("{not json")
        with caplog.at_level(logging.WARNING):
            assert read_build_version(build.path) is None
        assert "Could not read build info" in caplog.text


@pytest.mark.unit
class TestZipNaming:
    """Test cases for archive names and versions."""

    def test_compression_format_extension(self):
        assert CompressionFormat("7z").extension == ".7z"
        assert CompressionFormat.TGZ.extension == ".tgz"
        assert CompressionFormat.RawFile.extension == ""

    @pytest.mark.parametrize("name,ignored", [
        (".DS_Store", True),
        ("Game_BurstDebugInformation_DoNotShip", True),
        ("Game_BackUpThisFolder_ButDontShipItWithYourGame", True),
        ("build.json", True),
        ("Game_Data", False),
    ])
    def test_is_ignored(self, name, ignored):
        assert is_ignored(name) is ignored

    def test_pretty_name(self, make_build, distro_kwargs):
        distro = ZipDistro("zip", pretty_names={"standalonelinux64": "My Game"}, **distro_kwargs)
        assert distro.get_pretty_name(make_build(), fallback="Game") == "My Game"
        assert distro.get_pretty_name(make_build("StandaloneOSX", "Mac"), fallback="Mac") == "Mac"

    def test_pretty_name_with_build_version(self, make_build, distro_kwargs):
        build = make_build()
        _write_build_info(build, {"major": 1, "minor": 2, "patch": 3, "build": 4})
        distro = ZipDistro("zip", pretty_names={"StandaloneLinux64": "My Game"}, append_version=True,
                           version="9.9", **distro_kwargs)
        assert distro.get_pretty_name(build) == "My Game 1.2.3"

    def test_pretty_name_with_configured_version(self, make_build, distro_kwargs):
        distro = ZipDistro("zip", append_version=True, version="2.0", **distro_kwargs)
        assert distro.get_pretty_name(make_build(), fallback="Game") == "Game 2.0"

    def test_undefined_build_version_falls_back(self, make_build, distro_kwargs, caplog):
        build = make_build()
        _write_build_info(build, None)
        distro = ZipDistro("zip", append_version=True, version="2.0", **distro_kwargs)
        with caplog.at_level(logging.WARNING):
            assert distro.get_version(build) == "2.0"
        assert "contains no version" in caplog.text


@pytest.mark.unit
class TestZipValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("settings,message", [
        ({"format": "rar"}, "format"),
        ({"compression": 4}, "compression"),
        ({"compression": 12}, "compression"),
        ({"pretty_names": {"Dreamcast": "Game"}}, "Dreamcast"),
    ])
    async def test_invalid_settings(self, settings, message, make_build, seven_zip, distro_kwargs):
        distro = ZipDistro("zip", seven_zip_path=str(seven_zip), **settings, **distro_kwargs)
        with pytest.raises(ConfigurationError) as exc_info:
            await distro.validate([make_build()])
        assert message in str(exc_info.value)
        assert exc_info.value.source == "zip"

    @pytest.mark.asyncio
    async def test_format_is_case_insensitive(self, make_build, seven_zip, distro_kwargs):
        distro = ZipDistro("zip", format="TGZ", seven_zip_path=str(seven_zip), **distro_kwargs)
        await distro.validate([make_build()])
        assert distro.compression_format is CompressionFormat.TGZ

    @pytest.mark.asyncio
    async def test_rawfile_requires_file_builds(self, make_build, distro_kwargs):
        distro = ZipDistro("zip", format="rawfile", **distro_kwargs)
        with pytest.raises(ConfigurationError):
            await distro.validate([make_build()])

    @pytest.mark.asyncio
    async def test_missing_seven_zip(self, make_build, temp_dir, distro_kwargs):
        distro = ZipDistro("zip", seven_zip_path=str(temp_dir / "no" / "7z"), **distro_kwargs)
        with pytest.raises(ConfigurationError) as exc_info:
            await distro.validate([make_build()])
        assert "7-Zip path" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_build(self, temp_dir, seven_zip, distro_kwargs):
        distro = ZipDistro("zip", seven_zip_path=str(seven_zip), **distro_kwargs)
        with pytest.raises(ConfigurationError) as exc_info:
            await distro.validate([BuildPath(BuildTarget.StandaloneOSX, temp_dir / "missing")])
        assert "does not exist" in str(exc_info.value)


@posix_only
@pytest.mark.unit
class TestZipArchiving:
    """Test cases for archiving builds with 7-Zip."""

    @pytest.mark.asyncio
    async def test_zip_directory(self, make_build, seven_zip, seven_zip_log, distro_kwargs, registry):
        build = make_build()
        distro = ZipDistro("zip", pretty_names={"StandaloneLinux64": "My Game"}, compression=9,
                           seven_zip_path=str(seven_zip), **distro_kwargs)

        archive = await distro.zip(build, TaskToken.start("zip", registry=registry))

        assert archive.path == (build.path.parent / "My_Game.zip").resolve()
        assert archive.path.is_file()
        assert archive.target is BuildTarget.StandaloneLinux64

        add, rename = seven_zip_log()
        assert add.startswith(f"a {archive.path} Game -mx9 -xr!.DS_Store")
        assert rename == f"rn {archive.path} Game My Game"

    @pytest.mark.asyncio
    async def test_zip_single_file(self, make_build, seven_zip, seven_zip_log, distro_kwargs, registry):
        build = make_build(name="Tool", files=("tool.exe", "build.json"))
        distro = ZipDistro("zip", format="7z", seven_zip_path=str(seven_zip), **distro_kwargs)

        archive = await distro.zip(build, TaskToken.start("zip", registry=registry))

        assert archive.path.name == "Tool.7z"
        log = seven_zip_log()
        assert len(log) == 1
        assert log[0].startswith(f"a {archive.path} tool.exe -mx5")

    @pytest.mark.asyncio
    async def test_zip_replaces_existing_archive(self, make_build, seven_zip, distro_kwargs, registry):
        build = make_build()
        existing = build.path.parent / "Game.zip"
        existing.write_text("old archive")
        distro = ZipDistro("zip", seven_zip_path=str(seven_zip), **distro_kwargs)

        archive = await distro.zip(build, TaskToken.start("zip", registry=registry))

        assert archive.path == existing.resolve()
        assert archive.path.read_text() == ""

    @pytest.mark.asyncio
    async def test_zip_empty_directory(self, make_build, seven_zip, distro_kwargs, registry):
        build = make_build(files=(".DS_Store",))
        distro = ZipDistro("zip", seven_zip_path=str(seven_zip), **distro_kwargs)
        with pytest.raises(ConfigurationError):
            await distro.zip(build, TaskToken.start("zip", registry=registry))

    @pytest.mark.asyncio
    async def test_rawfile_renames_build(self, make_build, distro_kwargs, registry):
        build = make_build()
        file_build = build.with_path(build.path / "game.x86_64")
        distro = ZipDistro("zip", format="rawfile", pretty_names={"StandaloneLinux64": "mygame"},
                           **distro_kwargs)

        result = await distro.zip(file_build, TaskToken.start("zip", registry=registry))

        assert result.path == build.path / "mygame.x86_64"
        assert result.path.is_file()
        assert not (build.path / "game.x86_64").exists()
