"""
S3 object store used as the durable destination for relayed recordings
"""

import logging
from typing import Any, BinaryIO

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from recrelay.exceptions import RelayError

logger = logging.getLogger(__name__)

# Multipart parts are read from the stream one at a time; memory stays
# around part size * concurrency regardless of the object size
PART_SIZE = 8 * 1024 * 1024
MAX_CONCURRENCY = 2


class S3ObjectStore:
    """Upload streams to an S3 bucket"""

    def __init__(
        self,
        bucket_name: str,
        region: str,
        access_key_id: str,
        secret_access_key: str,
        *,
        connect_timeout: float = 10,
        read_timeout: float = 60,
        client: Any = None,
    ):
        self.bucket_name = bucket_name
        self.region = region
        self.s3_client = client or boto3.client(
            "s3",
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
            config=BotoConfig(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )
        self.transfer_config = TransferConfig(
            multipart_threshold=PART_SIZE,
            multipart_chunksize=PART_SIZE,
            max_concurrency=MAX_CONCURRENCY,
        )

    def __repr__(self) -> str:
        return f"S3ObjectStore(bucket_name={self.bucket_name!r}, region={self.region!r})"

    def exists(self, path: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=path)
            return True
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise RelayError(f"Failed to check s3://{self.bucket_name}/{path}", details=str(e))

    def upload(
        self, path: str, stream: BinaryIO, content_type: str, overwrite: bool = True
    ) -> str:
        """
        Upload a readable stream to `path`

        Returns:
            The object key written

        Raises:
            RelayError: The object exists and overwrite is False, or S3 rejected the upload
        """
        if not overwrite and self.exists(path):
            raise RelayError(f"Object already exists: s3://{self.bucket_name}/{path}")

        try:
            self.s3_client.upload_fileobj(
                stream,
                self.bucket_name,
                path,
                ExtraArgs={"ContentType": content_type},
                Config=self.transfer_config,
            )
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            logger.error(f"S3 upload failed for s3://{self.bucket_name}/{path}: {e}")
            raise RelayError(f"Object store upload failed: {e}", details=str(e)) from e

        logger.info(f"Stored recording at s3://{self.bucket_name}/{path}")
        return path
