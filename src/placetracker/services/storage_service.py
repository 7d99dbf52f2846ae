"""
S3 object storage service for the PlaceTracker application.

Place photos, their thumbnails and profile photos are stored as objects in a
single bucket, keyed by path (``<user_id>/<place_id>/<ts>_<name>``). The
bucket is served publicly, so clients get plain URLs rather than presigned
ones.

Classes:
    StorageService: Upload, removal and public URLs for photo blobs
"""

import os
from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import ClientError


class StorageService:
    """
    Service for storing photo blobs in S3.

    Attributes:
        bucket: Name of the photos bucket
        region: AWS region of the bucket
        public_base_url: URL prefix under which objects are publicly served
        s3_client: Boto3 S3 client

    Example:
        >>> storage = StorageService()
        >>> storage.upload("u1/p1/1700000000000_cover.jpg", b"...", "image/jpeg")
        True
        >>> storage.get_public_url("u1/p1/1700000000000_cover.jpg")
        'https://photos.s3.us-east-1.amazonaws.com/u1/p1/1700000000000_cover.jpg'
    """

    def __init__(self, bucket: Optional[str] = None, public_base_url: Optional[str] = None):
        """
        Initialize the storage service.

        Args:
            bucket: Optional bucket override for PHOTOS_BUCKET
            public_base_url: Optional override for PHOTOS_PUBLIC_BASE_URL

        Raises:
            ValueError: If bucket name is not provided and not in environment
        """
        self.bucket = bucket or os.getenv("PHOTOS_BUCKET")
        self.region = os.getenv("AWS_REGION", "us-east-1")

        if not self.bucket:
            raise ValueError(
                "Bucket name must be provided either as parameter "
                "or PHOTOS_BUCKET environment variable"
            )

        self.public_base_url = (
            public_base_url
            or os.getenv("PHOTOS_PUBLIC_BASE_URL")
            or f"https://{self.bucket}.s3.{self.region}.amazonaws.com"
        ).rstrip("/")

        self.s3_client = boto3.client("s3", region_name=self.region)

    def upload(self, path: str, data: bytes, content_type: str = "image/jpeg") -> bool:
        """
        Upload a blob.

        Args:
            path: Object key
            data: Raw bytes
            content_type: MIME type stored with the object

        Returns:
            True if the upload succeeded, False otherwise
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
            return True

        except ClientError as e:
            print(f"Error uploading {path}: {e.response['Error'].get('Message', e)}")
            return False

    def remove(self, paths: Iterable[str]) -> bool:
        """
        Remove one or more objects.

        Returns:
            True if every object was removed (missing objects count as removed)
        """
        keys = [{"Key": path} for path in paths if path]
        if not keys:
            return True

        try:
            response = self.s3_client.delete_objects(
                Bucket=self.bucket, Delete={"Objects": keys, "Quiet": True}
            )

        except ClientError as e:
            print(f"Error removing objects: {e.response['Error'].get('Message', e)}")
            return False

        errors = response.get("Errors", [])
        for error in errors:
            print(f"Error removing {error.get('Key')}: {error.get('Message')}")

        return not errors

    def get_public_url(self, path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        return f"{self.public_base_url}/{quote(path)}"

    def health_check(self) -> Dict[str, Any]:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket)
            return {
                "status": "healthy",
                "bucket": self.bucket,
                "region": self.region,
                "timestamp": datetime.utcnow().isoformat(),
            }

        except ClientError as e:
            return {
                "status": "unhealthy",
                "error": f"S3 error: {e.response['Error'].get('Message', e)}",
                "bucket": self.bucket,
                "timestamp": datetime.utcnow().isoformat(),
            }
