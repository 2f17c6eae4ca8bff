import boto3
from botocore.exceptions import ClientError
from app.config import Settings
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class S3Storage:
    def __init__(self, settings: Settings, prefix: str = ""):
        if not all([settings.aws_access_key_id, settings.aws_secret_access_key, settings.s3_bucket_name]):
            raise ValueError("AWS S3 credentials and bucket name must be configured")

        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region
        )
        self.bucket_name = settings.s3_bucket_name
        self.prefix = prefix.strip("/")

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def upload_file(self, file_content: bytes, key: str, content_type: str = "application/json") -> str:
        """Upload file to S3 and return the S3 URL"""
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=self._key(key),
                Body=file_content,
                ContentType=content_type
            )
            return f"s3://{self.bucket_name}/{self._key(key)}"
        except ClientError as e:
            logger.error(f"Failed to upload file to S3: {str(e)}")
            raise

    def download_file(self, key: str) -> Optional[bytes]:
        """Download file from S3; None if the object does not exist"""
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=self._key(key))
            return response['Body'].read()
        except ClientError as e:
            if e.response['Error']['Code'] in ('NoSuchKey', '404'):
                return None
            logger.error(f"Failed to download file from S3: {str(e)}")
            raise
