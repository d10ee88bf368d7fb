"""
Distro that archives builds and uploads them with curl.
"""

import logging
from typing import Any, List, Optional

from ..models import BuildPath, ExecutionArgs
from ..system import Login, quote
from ..tasks import TaskToken
from ..validation import ConfigurationError
from .zip import ZipDistro

logger = logging.getLogger(__name__)


class UploadDistro(ZipDistro):
    """
    Archive each build and upload the archive to a server.

    Any protocol supported by curl can be used, e.g. FTP(S) or SFTP. The
    login password is passed to curl as a config on stdin, so it doesn't
    show up in the process list.
    """

    kind = "upload"

    def __init__(
        self,
        name: str,
        upload_url: str = "",
        curl_path: str = "curl",
        login: Any = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.upload_url = upload_url
        self.curl_path = curl_path
        self.login = Login.coerce(login, service="UploadDistro")

    async def validate(self, build_paths: List[BuildPath]) -> None:
        await super().validate(build_paths)
        self.require_executable(self.curl_path, "Path to curl")
        self.require_setting(self.upload_url, "Upload URL")
        if self.login.is_set:
            self.login.require_password(self.credentials, self.name)

    async def process(self, build_path: BuildPath, task: TaskToken) -> Any:
        archive = await self.zip(build_path, task)
        await self.upload(archive, task)
        return archive

    async def finalize(self, results: List[Any], task: TaskToken) -> None:
        logger.info(f"{self.name}: Files uploaded successfully")

    async def upload(self, archive: BuildPath, task: TaskToken) -> None:
        path = archive.path
        if not path.is_file():
            raise ConfigurationError(f"Archive file does not exist: {path}", source=self.name)

        # Without the trailing slash curl treats the last part as file name
        url = self.upload_url if self.upload_url.endswith("/") else self.upload_url + "/"

        config_input: Optional[str] = None
        if self.login.is_set:
            password = self.login.require_password(self.credentials, self.name)
            config_input = f'-u "{self.login.user}:{password}"\n'

        auth = "-K - " if config_input is not None else ""
        arguments = f"-T {quote(path)} {auth}--ssl -v {quote(url)}"

        task.report(0, description=f"Uploading {path.name} to {self.upload_url}")
        await self.execute(ExecutionArgs(self.curl_path, arguments, input=config_input), task)
