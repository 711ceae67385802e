"""
MinIO / S3 sink.
Streams each upload into an S3 multipart upload, part by part.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from file_ingest.core.config import Settings
from file_ingest.utils.content_type import detect_content_type

logger = logging.getLogger(__name__)

# S3/MinIO minimum size for every part except the last
MIN_PART_SIZE = 5 * 1024 * 1024


def build_s3_client(settings: Settings):
    """
    Create a boto3 S3 client for the configured MinIO endpoint.

    Args:
        settings: Application settings with MINIO_* values

    Returns:
        boto3 S3 client
    """
    if not settings.MINIO_ENDPOINT:
        raise ValueError("MINIO_ENDPOINT is required when SINK_BACKEND=s3")

    # Parse endpoint to extract protocol and host
    endpoint_url = settings.MINIO_ENDPOINT
    if not endpoint_url.startswith(('http://', 'https://')):
        protocol = 'https' if settings.MINIO_SECURE else 'http'
        endpoint_url = f"{protocol}://{endpoint_url}"

    client = boto3.client(
        's3',
        endpoint_url=endpoint_url,
        aws_access_key_id=settings.MINIO_ACCESS_KEY,
        aws_secret_access_key=settings.MINIO_SECRET_KEY,
        config=Config(signature_version='s3v4'),
        region_name='us-east-1'  # MinIO doesn't care about region
    )
    logger.info(f"S3 client initialized with endpoint: {endpoint_url}")
    return client


@dataclass
class S3Upload:
    """Open multipart upload for one file."""
    key: str
    upload_id: str
    buffer: bytearray = field(default_factory=bytearray)
    parts: List[Dict[str, Any]] = field(default_factory=list)
    size_bytes: int = 0


class S3Sink:
    """Sink writing each upload as an S3 object through a multipart upload."""

    def __init__(self, client, bucket: str, part_size: int = 10 * 1024 * 1024):
        """
        Args:
            client: boto3 S3 client
            bucket: Destination bucket
            part_size: Bytes per uploaded part (at least 5MB)
        """
        if part_size < MIN_PART_SIZE:
            raise ValueError(f"part_size must be at least {MIN_PART_SIZE} bytes")
        self.client = client
        self.bucket = bucket
        self.part_size = part_size

    def ensure_bucket_exists(self) -> None:
        """
        Ensure bucket exists, create if it doesn't.

        Raises:
            ClientError: If bucket creation fails
        """
        try:
            self.client.head_bucket(Bucket=self.bucket)
            logger.info(f"Bucket exists: {self.bucket}")
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code != '404':
                logger.error(f"Error checking bucket {self.bucket}: {e}")
                raise
            self.client.create_bucket(Bucket=self.bucket)
            logger.info(f"Created bucket: {self.bucket}")

    def open(self, file_name: str) -> S3Upload:
        response = self.client.create_multipart_upload(
            Bucket=self.bucket,
            Key=file_name,
            ContentType=detect_content_type(file_name)
        )
        logger.info(f"[S3 SINK] Started multipart upload: {self.bucket}/{file_name}")
        return S3Upload(key=file_name, upload_id=response['UploadId'])

    def write(self, handle: S3Upload, data: bytes) -> None:
        handle.buffer.extend(data)
        handle.size_bytes += len(data)
        while len(handle.buffer) >= self.part_size:
            part = bytes(handle.buffer[:self.part_size])
            del handle.buffer[:self.part_size]
            self._upload_part(handle, part)

    def close(self, handle: S3Upload) -> None:
        # The last part may be smaller than the minimum
        if handle.buffer or not handle.parts:
            self._upload_part(handle, bytes(handle.buffer))
            handle.buffer.clear()

        self.client.complete_multipart_upload(
            Bucket=self.bucket,
            Key=handle.key,
            UploadId=handle.upload_id,
            MultipartUpload={'Parts': handle.parts}
        )
        logger.info(
            f"[S3 SINK] Completed: {self.bucket}/{handle.key} "
            f"({len(handle.parts)} parts, {handle.size_bytes} bytes)"
        )

    def abort(self, handle: S3Upload) -> None:
        handle.buffer.clear()
        self.client.abort_multipart_upload(
            Bucket=self.bucket,
            Key=handle.key,
            UploadId=handle.upload_id
        )
        logger.warning(f"[S3 SINK] Aborted multipart upload: {self.bucket}/{handle.key}")

    def _upload_part(self, handle: S3Upload, data: bytes) -> None:
        part_number = len(handle.parts) + 1
        response = self.client.upload_part(
            Bucket=self.bucket,
            Key=handle.key,
            UploadId=handle.upload_id,
            PartNumber=part_number,
            Body=data
        )
        handle.parts.append({'ETag': response['ETag'], 'PartNumber': part_number})
        logger.debug(f"[S3 SINK] Uploaded part {part_number} ({len(data)} bytes) of {handle.key}")
