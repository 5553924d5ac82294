"""
S3 Storage Service - uploaded documents live in a single bucket
"""
import os
import re
import time
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from pixelpharm.config import settings
from pixelpharm.exceptions import StorageError

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".txt": "text/plain",
}


def aws_client(service_name: str):
    """boto3 client configured from settings; falls back to the default credential chain"""
    kwargs = {"region_name": settings.AWS_REGION}
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
    return boto3.client(service_name, **kwargs)


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^A-Za-z0-9.\-]", "_", filename or "upload")


def guess_media_type(file_key: str) -> str:
    extension = os.path.splitext(file_key or "")[1].lower()
    return MEDIA_TYPES.get(extension, "application/octet-stream")


class StorageService:
    """Thin wrapper around the S3 client"""

    def __init__(self, client=None, bucket: Optional[str] = None):
        self._client = client
        self.bucket = bucket or settings.AWS_S3_BUCKET_NAME

    @property
    def client(self):
        # Created lazily so importing the app never needs AWS credentials
        if self._client is None:
            self._client = aws_client("s3")
        return self._client

    @staticmethod
    def build_file_key(user_id: str, upload_type: str, filename: str) -> str:
        timestamp = int(time.time() * 1000)
        return f"uploads/{user_id}/{upload_type}/{timestamp}-{sanitize_filename(filename)}"

    def generate_presigned_upload_url(self, file_key: str, content_type: str,
                                      expires_in: Optional[int] = None) -> str:
        try:
            return self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.bucket, "Key": file_key, "ContentType": content_type},
                ExpiresIn=expires_in or settings.PRESIGNED_URL_EXPIRES,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Presigned URL generation failed for {file_key}: {e}")
            raise StorageError(f"Failed to generate upload URL: {e}")

    def get_file_bytes(self, file_key: str) -> bytes:
        logger.info(f"Retrieving s3://{self.bucket}/{file_key}")
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=file_key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 get_object failed for {file_key}: {e}")
            raise StorageError(f"Failed to retrieve file from S3: {e}")

        body = response.get("Body")
        if body is None:
            raise StorageError(f"File not found in S3: {file_key}")
        return body.read()

    def put_file_bytes(self, file_key: str, data: bytes, content_type: Optional[str] = None) -> str:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=file_key,
                Body=data,
                ContentType=content_type or guess_media_type(file_key),
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 put_object failed for {file_key}: {e}")
            raise StorageError(f"Failed to upload file to S3: {e}")

        logger.info(f"Stored {len(data)} bytes at s3://{self.bucket}/{file_key}")
        return f"s3://{self.bucket}/{file_key}"


# Singleton instance
storage_service = StorageService()
