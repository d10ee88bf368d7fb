"""
Notarization of macOS builds with Apple's notarization service.

The distro can be used on its own or as the pre-processing step of another
distro (e.g. to notarize a mac build before it's archived), see
`notarize_if_mac`.
"""

import logging
import re
from pathlib import Path
from typing import Any, List, Optional, Tuple

from ..models import BuildPath, BuildTarget, ExecutionArgs, ExitOutcome, TimeoutConstants
from ..orchestration import DistroBase
from ..system import Login, join_arguments, quote
from ..tasks import TaskToken, poll_until
from ..validation import ConfigurationError, ParseFailure, ProcessFailure, validate_file_exists

logger = logging.getLogger(__name__)

REQUEST_UUID_PATTERN = re.compile(r"RequestUUID = ([a-z0-9-]+)")
STATUS_PATTERN = re.compile(r"Status: ([\w ]+)")
LOG_FILE_PATTERN = re.compile(r"LogFileURL: (\S+)")

STATUS_IN_PROGRESS = "in progress"
STATUS_SUCCESS = "success"


class NotarizationDistro(DistroBase):
    """
    Sign, upload and staple macOS app bundles.

    Steps for each build:

    1. Check if the app is already notarized (staple probe)
    2. Remove leftover `.meta` files, sign plugins and the app
    3. Zip the app and upload it to the notarization service
    4. Poll the status of the request until it's processed
    5. Staple the notarization ticket to the app

    Args:
        sign_identity: Code signing identity
        entitlements: Path to an entitlements file
        primary_bundle_id: Bundle id the upload is registered with
        login: Apple ID used for the upload (password from the credential store)
        asc_provider: App Store Connect provider, for accounts in multiple teams
        status_check_interval: Seconds between status checks
        max_wait: Maximum seconds to wait for the service, None to wait indefinitely
    """

    kind = "notarization"

    def __init__(
        self,
        name: str,
        sign_identity: str = "",
        entitlements: Optional[str] = None,
        primary_bundle_id: str = "",
        login: Any = None,
        asc_provider: Optional[str] = None,
        status_check_interval: Optional[float] = None,
        max_wait: Optional[float] = None,
        xcrun_path: str = "xcrun",
        codesign_path: str = "codesign",
        zip_path: str = "zip",
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.sign_identity = sign_identity
        self.entitlements = entitlements
        self.primary_bundle_id = primary_bundle_id
        self.login = Login.coerce(login, service="NotarizationDistro")
        self.asc_provider = asc_provider
        if status_check_interval is None:
            status_check_interval = (self.config.status_check_interval if self.config is not None
                                     else TimeoutConstants.STATUS_CHECK_INTERVAL)
        self.status_check_interval = status_check_interval
        self.max_wait = max_wait
        self.xcrun_path = xcrun_path
        self.codesign_path = codesign_path
        self.zip_path = zip_path

    def supports(self, build_path: BuildPath) -> bool:
        return build_path.target is BuildTarget.StandaloneOSX

    async def validate(self, build_paths: List[BuildPath]) -> None:
        await super().validate(build_paths)
        self.validate_settings()

    def validate_settings(self) -> None:
        """
        Check the notarization settings, also used by distros notarizing
        as part of their own run.

        Raises:
            ConfigurationError: If a setting, the password or a tool is missing
        """
        self.require_setting(self.sign_identity, "Sign identity")
        self.require_setting(self.primary_bundle_id, "Primary bundle id")
        if self.entitlements:
            validate_file_exists(self.entitlements, "Entitlements file", source=self.name)
        self.login.require_password(self.credentials, self.name)
        self.require_executable(self.xcrun_path, "xcrun")
        self.require_executable(self.codesign_path, "codesign")
        self.require_executable(self.zip_path, "zip")

    async def process(self, build_path: BuildPath, task: TaskToken) -> Any:
        return await self.notarize(build_path, task)

    async def notarize_if_mac(self, build_path: BuildPath, task: TaskToken) -> BuildPath:
        """Notarize the build if it's a macOS build, otherwise return it unchanged."""
        if not self.supports(build_path):
            return build_path
        return await self.notarize(build_path, task)

    async def notarize(self, build_path: BuildPath, task: TaskToken) -> BuildPath:
        """
        Notarize a macOS app bundle.

        Args:
            build_path: Build pointing to the `.app` bundle
            task: Parent task, the notarization reports into a child task

        Returns:
            The notarized build

        Raises:
            ConfigurationError: If the build is not an app bundle
            ParseFailure: If the service's response cannot be parsed
            ProcessFailure: If signing, uploading or notarization failed
            WaitTimeoutError: If the service did not finish within `max_wait`
        """
        app_path = build_path.path
        if not app_path.is_dir() or app_path.suffix != ".app":
            raise ConfigurationError(f"Build is not an app bundle: {app_path}", source=self.name)

        child = task.start_child(f"Notarize {app_path.name}")
        try:
            total = 5
            child.report(0, total, description="Checking app")
            if await self._is_notarized(app_path, child):
                logger.info(f"{self.name}: {app_path.name} is already notarized")
                return build_path

            child.report(1, description="Signing app")
            self._remove_meta_files(app_path)
            await self._sign(app_path, child)

            child.report(2, description="Uploading app")
            request_uuid = await self._upload(app_path, child)
            logger.info(f"{self.name}: Uploaded {app_path.name}, request {request_uuid}")

            child.report(3, description="Waiting for notarization")
            await self._wait_for_notarization(request_uuid, child)

            child.report(4, description="Stapling ticket")
            result = await self.execute(self._xcrun(f"stapler staple {quote(app_path)}"), child, check=False)
            if not result.succeeded:
                logger.warning(f"{self.name}: Stapling {app_path.name} failed, the app is notarized but not stapled")

            child.report(total, description="Notarization complete")
            return build_path
        finally:
            child.remove()

    async def _is_notarized(self, app_path: Path, task: TaskToken) -> bool:
        args = self._xcrun(f"stapler staple {quote(app_path)}")
        args.silent_error = True
        result = await self.execute(args, task, check=False)
        # Only a failing check means "not notarized yet", a killed one ends the run
        if result.outcome is ExitOutcome.CANCELLED:
            result.check(self.name)
        return result.succeeded

    def _remove_meta_files(self, app_path: Path) -> None:
        for meta_file in app_path.rglob("*.meta"):
            logger.debug(f"{self.name}: Removing {meta_file}")
            meta_file.unlink()

    async def _sign(self, app_path: Path, task: TaskToken) -> None:
        plugins_path = app_path / "Contents" / "Plugins"
        if plugins_path.is_dir():
            plugins = sorted(list(plugins_path.glob("*.dylib")) + list(plugins_path.glob("*.bundle")))
            for plugin in plugins:
                await self._codesign(plugin, task)
        await self._codesign(app_path, task)

    async def _codesign(self, path: Path, task: TaskToken) -> None:
        entitlements = f"--entitlements {quote(self.entitlements)}" if self.entitlements else None
        arguments = join_arguments(
            "--force --deep --timestamp --options=runtime",
            entitlements,
            f"--sign {quote(self.sign_identity)}",
            quote(path),
        )
        await self.execute(ExecutionArgs(self.codesign_path, arguments), task)

    async def _upload(self, app_path: Path, task: TaskToken) -> str:
        password = self.login.require_password(self.credentials, self.name)
        zip_path = app_path.with_name(app_path.name + ".zip")
        try:
            await self.execute(ExecutionArgs(
                self.zip_path,
                f"-qr {quote(zip_path)} {quote(app_path.name)}",
                working_dir=app_path.parent,
            ), task)

            provider = f"--asc-provider {quote(self.asc_provider)}" if self.asc_provider else None
            args = self._xcrun(join_arguments(
                "altool --notarize-app",
                f"--primary-bundle-id {quote(self.primary_bundle_id)}",
                f"--username {quote(self.login.user)}",
                provider,
                f"--file {quote(zip_path)}",
            ))
            args.input = password + "\n"
            result = await self.execute(args, task)
        finally:
            if zip_path.exists():
                zip_path.unlink()

        match = REQUEST_UUID_PATTERN.search(result.stdout)
        if not match:
            raise ParseFailure(
                "Could not find request UUID in upload output",
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
                source=self.name,
            )
        return match.group(1)

    async def _wait_for_notarization(self, request_uuid: str, task: TaskToken) -> None:
        password = self.login.require_password(self.credentials, self.name)

        async def check_status() -> Optional[Tuple[str, Optional[str]]]:
            args = self._xcrun(f"altool --notarization-info {quote(request_uuid)} "
                               f"--username {quote(self.login.user)}")
            args.input = password + "\n"
            result = await self.execute(args, task)

            status_match = STATUS_PATTERN.search(result.stdout)
            if not status_match:
                raise ParseFailure(
                    "Could not find status in notarization info",
                    exit_code=result.exit_code,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    source=self.name,
                )
            status = status_match.group(1).strip().lower()
            if status == STATUS_IN_PROGRESS:
                return None
            log_match = LOG_FILE_PATTERN.search(result.stdout)
            return status, log_match.group(1) if log_match else None

        # Requests are never processed instantly, skip the first check
        await task.sleep(self.status_check_interval)
        status, log_url = await poll_until(
            check_status,
            self.status_check_interval,
            max_wait=self.max_wait,
            cancellation=task.cancellation,
            description=f"notarization request {request_uuid}",
            source=self.name,
        )

        if status != STATUS_SUCCESS:
            raise ProcessFailure(
                f"Notarization failed with status '{status}' (log: {log_url or 'none'})",
                source=self.name,
            )
        logger.info(f"{self.name}: Notarization succeeded (log: {log_url or 'none'})")

    def _xcrun(self, arguments: str) -> ExecutionArgs:
        return ExecutionArgs(self.xcrun_path, arguments)
