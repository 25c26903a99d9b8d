# s3_utils.py: bucket access through the storage S3 endpoint
from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .errors import ConfigError, NotFoundError, StorageError

logger = logging.getLogger("vidworker.storage")

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404", "NoSuchBucket"}


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


class StorageGateway:
    """
    One bucket-agnostic wrapper, two credentials:

    - restricted: anon key, used for read/test style calls
    - privileged: service-role key, bypasses object-level access rules;
      used for everything the pipeline reads and writes

    Clients are built once, here, and shared across requests.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._clients: Dict[bool, Any] = {}
        if settings.anon_key:
            self._clients[False] = self._make_client(settings.anon_key)
        if settings.service_role_key:
            self._clients[True] = self._make_client(settings.service_role_key)

    def _make_client(self, key: str):
        s = self.settings
        # session-token auth: access key id = project ref, secret = anon key
        return boto3.client(
            "s3",
            endpoint_url=s.endpoint_url or None,
            region_name=s.region,
            aws_access_key_id=s.project_ref,
            aws_secret_access_key=s.anon_key or key,
            aws_session_token=key,
            config=Config(s3={"addressing_style": "path"}),
        )

    def client(self, privileged: bool = True):
        c = self._clients.get(privileged)
        if c is None:
            name = "SUPABASE_SERVICE_ROLE_KEY" if privileged else "SUPABASE_ANON_KEY"
            raise ConfigError(f"Missing storage configuration: {name} is not set")
        return c

    # ------------ object ops ------------

    def download(self, bucket: str, key: str, privileged: bool = True) -> bytes:
        s3 = self.client(privileged)
        logger.info(f"Downloading s3://{bucket}/{key}")
        try:
            obj = s3.get_object(Bucket=bucket, Key=key)
            return obj["Body"].read()
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise NotFoundError(f"Video not found in storage: {key}")
            raise StorageError(f"Failed to download {key}: {e}")
        except BotoCoreError as e:
            raise StorageError(f"Failed to download {key}: {e}")

    def exists(self, bucket: str, key: str, privileged: bool = True) -> bool:
        s3 = self.client(privileged)
        try:
            s3.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise StorageError(f"Failed to stat {key}: {e}")
        except BotoCoreError as e:
            raise StorageError(f"Failed to stat {key}: {e}")

    def upload(self, bucket: str, key: str, data: bytes, content_type: str,
               overwrite: bool = True, privileged: bool = True) -> None:
        s3 = self.client(privileged)
        if not overwrite and self.exists(bucket, key, privileged):
            raise StorageError(f"Object already exists: {key}")
        logger.info(f"Uploading s3://{bucket}/{key} ({len(data)} bytes, {content_type})")
        try:
            s3.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to upload {key}: {e}")

    def upload_file(self, bucket: str, key: str, local_path: Path, content_type: str,
                    overwrite: bool = True, privileged: bool = True) -> None:
        """
        Managed transfer straight from disk (multipart for big merged videos).
        """
        s3 = self.client(privileged)
        if not overwrite and self.exists(bucket, key, privileged):
            raise StorageError(f"Object already exists: {key}")
        logger.info(f"Uploading {local_path} -> s3://{bucket}/{key} ({content_type})")
        try:
            s3.upload_file(str(local_path), bucket, key, ExtraArgs={"ContentType": content_type})
        except (S3UploadFailedError, ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to upload {key}: {e}")

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.settings.public_url_base}/{bucket}/{key}"

    def ping(self, bucket: str) -> Dict[str, Any]:
        s3 = self.client(privileged=False)
        try:
            s3.list_objects_v2(Bucket=bucket, MaxKeys=1)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Storage connection error: {e}")
        return {"bucket": bucket, "reachable": True}

