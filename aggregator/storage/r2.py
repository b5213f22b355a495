"""Stage prepared clips in Cloudflare R2 through its S3-compatible API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal, Optional
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import field_validator

from .. import config
from ..common.backoff import retry
from ..common.exceptions import ComponentError
from ..helpers.cleanup import remove_file
from ..interfaces.media import MediaArtifact
from ..schema import ComponentSettings, NonBlank

logger = logging.getLogger(__name__)

CONTENT_TYPE = "video/mp4"


class R2Settings(ComponentSettings):
    type: Literal["r2"] = "r2"
    account_id: NonBlank
    access_key: NonBlank
    secret_key: NonBlank
    bucket: NonBlank
    public_url: NonBlank
    region: NonBlank = "auto"
    endpoint: Optional[NonBlank] = None

    @field_validator("public_url", "endpoint")
    @classmethod
    def _http_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parsed = urlparse(value)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError("must be an http or https URL")
        return value


class R2Stager:
    """Upload a local artifact and hand back its public URL.

    Objects are keyed by the artifact's file name; the public URL is
    ``public_url/<key>``. The local file is removed once the upload succeeds.
    """

    name = "r2"
    settings_model = R2Settings

    def __init__(
        self,
        *,
        account_id: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        public_url: str,
        region: str = "auto",
        endpoint: Optional[str] = None,
        client_factory: Any = None,
    ) -> None:
        self.account_id = account_id
        self.access_key = access_key
        self.secret_key = secret_key
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")
        self.region = region
        self.endpoint = endpoint or f"https://{account_id}.r2.cloudflarestorage.com"
        self._client_factory = client_factory or boto3.client
        self._client: Any = None

    @classmethod
    def from_settings(cls, settings: R2Settings) -> "R2Stager":
        return cls(**settings.options())

    def start(self) -> None:
        if self._client is not None:
            return
        self._client = self._client_factory(
            "s3",
            endpoint_url=self.endpoint,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.region,
            config=Config(s3={"addressing_style": "path"}),
        )
        logger.info("stager started endpoint=%s bucket=%s", self.endpoint, self.bucket)

    def stop(self) -> None:
        client, self._client = self._client, None
        if client is not None and hasattr(client, "close"):
            client.close()
        logger.info("stager stopped bucket=%s", self.bucket)

    def _require_client(self) -> Any:
        if self._client is None:
            raise ComponentError(self.name, "stager is not started", {"bucket": self.bucket})
        return self._client

    def stage(self, artifact: MediaArtifact) -> MediaArtifact:
        client = self._require_client()
        source: Optional[Path] = artifact.file
        if source is None or not source.is_file():
            raise ComponentError(
                self.name,
                "local file is missing",
                {"id": artifact.id, "source_path": source},
            )

        key = source.name

        def _upload() -> None:
            with source.open("rb") as handle:
                client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=handle,
                    ContentType=CONTENT_TYPE,
                )

        try:
            retry(
                _upload,
                config.STAGE_UPLOAD_ATTEMPTS,
                config.STAGE_UPLOAD_BACKOFF_SECONDS,
                retry_on=(BotoCoreError, ClientError),
                label=f"r2 put {key}",
            )
        except (BotoCoreError, ClientError) as exc:
            raise ComponentError(
                self.name, "upload failed", {"bucket": self.bucket, "key": key, "error": exc}
            ) from exc

        uri = f"{self.public_url}/{key}"
        logger.info("staged id=%s key=%s uri=%s", artifact.id, key, uri)
        try:
            remove_file(source)
        except OSError as exc:
            logger.warning("stager cleanup file=%s error=%s", source, exc)
        return artifact.with_uri(uri).with_file(None)

    def clean(self, artifact: MediaArtifact) -> None:
        client = self._require_client()
        if not artifact.uri:
            return
        prefix = f"{self.public_url}/"
        if artifact.uri.startswith(prefix):
            key = artifact.uri[len(prefix):]
        else:
            key = urlparse(artifact.uri).path.lstrip("/")
        if not key:
            raise ComponentError(self.name, "cannot derive object key", {"uri": artifact.uri})
        try:
            client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise ComponentError(
                self.name, "delete failed", {"bucket": self.bucket, "key": key, "error": exc}
            ) from exc
        logger.info("unstaged id=%s key=%s", artifact.id, key)


__all__ = ["R2Settings", "R2Stager"]
