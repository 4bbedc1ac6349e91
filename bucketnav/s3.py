from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

import boto3
import requests
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import StoreConfig

logger = logging.getLogger(__name__)

DELIMITER = "/"
LIST_MAX_KEYS = 1000
DOWNLOAD_CHUNK_SIZE = 64 * 1024
HTTP_TIMEOUT_SECONDS = 30
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class StoreError(RuntimeError):
    """Raised when a request to the object store fails."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class ObjectNotFound(StoreError):
    """Raised when the requested key does not exist."""

    def __init__(self, bucket: str, key: str) -> None:
        super().__init__("HeadObject", f"s3://{bucket}/{key} does not exist")
        self.bucket = bucket
        self.key = key


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: Optional[int] = None
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class Listing:
    prefix: str
    common_prefixes: list[str] = field(default_factory=list)
    contents: list[ObjectInfo] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.common_prefixes and not self.contents


@dataclass(frozen=True)
class ObjectHead:
    key: str
    content_type: str = ""
    size: Optional[int] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


def _is_not_found(exc: ClientError) -> bool:
    error = exc.response.get("Error", {})
    code = str(error.get("Code", ""))
    if code in NOT_FOUND_CODES:
        return True
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return status == 404


class S3Store:
    """Blocking request/response wrapper around an S3 client.

    Every failure is re-raised as :class:`StoreError` so callers only have to
    handle one exception family; a missing key on ``head_object`` is reported
    as :class:`ObjectNotFound`.
    """

    def __init__(
        self,
        config: StoreConfig,
        client=None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self._client = client
        self._http = http or requests.Session()

    @property
    def client(self):
        if self._client is None:
            session = boto3.session.Session(
                aws_access_key_id=self.config.access_key_id,
                aws_secret_access_key=self.config.secret_access_key,
                region_name=self.config.region,
            )
            kwargs = {"config": Config(signature_version="s3v4")}
            if self.config.endpoint_url:
                kwargs["endpoint_url"] = self.config.endpoint_url
            self._client = session.client("s3", **kwargs)
        return self._client

    def list_buckets(self) -> list[str]:
        logger.debug("ListBuckets")
        try:
            response = self.client.list_buckets()
        except (BotoCoreError, ClientError) as exc:
            raise StoreError("ListBuckets", str(exc)) from exc
        names: list[str] = []
        for bucket in response.get("Buckets", []):
            name = bucket.get("Name")
            if name:
                names.append(name)
        return names

    def list_objects(
        self, bucket: str, prefix: str = "", delimiter: str = DELIMITER
    ) -> Listing:
        logger.debug("ListObjects bucket=%s prefix=%r", bucket, prefix)
        kwargs = {
            "Bucket": bucket,
            "Prefix": prefix,
            "Delimiter": delimiter,
            "MaxKeys": LIST_MAX_KEYS,
        }
        try:
            response = self.client.list_objects_v2(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError("ListObjects", str(exc)) from exc
        prefixes: list[str] = []
        for entry in response.get("CommonPrefixes", []):
            value = entry.get("Prefix")
            if value:
                prefixes.append(value)
        objects: list[ObjectInfo] = []
        for entry in response.get("Contents", []):
            key = entry.get("Key")
            if not key:
                continue
            # Folder placeholder objects share the prefix's own key.
            if prefix and key == prefix:
                continue
            size = entry.get("Size")
            objects.append(
                ObjectInfo(
                    key=key,
                    size=int(size) if size is not None else None,
                    last_modified=entry.get("LastModified"),
                )
            )
        if response.get("IsTruncated"):
            logger.info(
                "Listing of s3://%s/%s truncated at %d keys", bucket, prefix, LIST_MAX_KEYS
            )
        return Listing(prefix=prefix, common_prefixes=prefixes, contents=objects)

    def head_object(self, bucket: str, key: str) -> ObjectHead:
        logger.debug("HeadObject bucket=%s key=%s", bucket, key)
        try:
            response = self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if _is_not_found(exc):
                raise ObjectNotFound(bucket, key) from exc
            raise StoreError("HeadObject", str(exc)) from exc
        except BotoCoreError as exc:
            raise StoreError("HeadObject", str(exc)) from exc
        return ObjectHead(
            key=key,
            content_type=response.get("ContentType") or "",
            size=response.get("ContentLength"),
            last_modified=response.get("LastModified"),
            etag=response.get("ETag"),
        )

    def object_exists(self, bucket: str, key: str) -> bool:
        try:
            self.head_object(bucket, key)
        except ObjectNotFound:
            return False
        return True

    def signed_url(
        self, bucket: str, key: str, expires_in: Optional[int] = None
    ) -> str:
        expiry = expires_in if expires_in is not None else self.config.url_expiry
        if expiry <= 0:
            raise ValueError("expires_in must be greater than zero")
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expiry,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StoreError("GetObject", str(exc)) from exc

    def fetch_text(
        self, url: str, max_bytes: Optional[int] = None, strict: bool = False
    ) -> str:
        """Fetch a signed URL as UTF-8 text.

        With ``strict`` undecodable bytes raise ``UnicodeDecodeError`` instead
        of being replaced, so the text can be written back losslessly.
        """
        data = self._fetch_bytes(url, max_bytes)
        return data.decode("utf-8", errors="strict" if strict else "replace")

    def _fetch_bytes(self, url: str, max_bytes: Optional[int]) -> bytes:
        headers = {}
        if max_bytes is not None:
            headers["Range"] = f"bytes=0-{max_bytes - 1}"
        try:
            response = self._http.get(url, headers=headers, timeout=HTTP_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise StoreError("GetObject", str(exc)) from exc
        data = response.content
        if max_bytes is not None:
            data = data[:max_bytes]
        return data

    def download(self, url: str, destination: str | os.PathLike) -> Path:
        dest_path = Path(destination).expanduser()
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        # The destination is only replaced once the whole body has arrived.
        handle = tempfile.NamedTemporaryFile(
            dir=dest_path.parent, prefix=f".{dest_path.name}.", suffix=".part", delete=False
        )
        temp_path = Path(handle.name)
        try:
            with handle:
                with self._http.get(url, stream=True, timeout=HTTP_TIMEOUT_SECONDS) as response:
                    response.raise_for_status()
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
            os.replace(temp_path, dest_path)
        except requests.RequestException as exc:
            raise StoreError("GetObject", str(exc)) from exc
        finally:
            temp_path.unlink(missing_ok=True)
        logger.info("Downloaded to %s", dest_path)
        return dest_path

    def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes | str,
        content_type: Optional[str] = None,
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        kwargs = {"Bucket": bucket, "Key": key, "Body": body}
        if content_type:
            kwargs["ContentType"] = content_type
        try:
            self.client.put_object(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError("PutObject", str(exc)) from exc
        logger.info("Put s3://%s/%s (%d bytes)", bucket, key, len(body))

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError("DeleteObject", str(exc)) from exc
        logger.info("Deleted s3://%s/%s", bucket, key)
