"""
Object storage for the company logo (S3-compatible: MinIO, AWS S3, DigitalOcean Spaces).

Uploaded files are stored publicly readable so the logo URL can be used in
pages and PDFs directly.
"""
import json
import logging
import mimetypes
import uuid
from typing import Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import ClientError
from flask import current_app
from werkzeug.datastructures import FileStorage

from invoicing.exceptions import ValidationError

logger = logging.getLogger(__name__)

LOGO_PREFIX = 'logo'


class StorageService:
    """
    S3-compatible object storage service.

    Usage:
        storage = StorageService()
        url = storage.upload_file(file, 'logo/3f2a.png', 'image/png')
        storage.delete_file('logo/3f2a.png')
    """

    def __init__(self, client=None):
        """Initialize S3 client from Flask config."""
        self.endpoint = current_app.config['S3_ENDPOINT']
        self.bucket = current_app.config['S3_BUCKET']
        self.public_url = current_app.config['S3_PUBLIC_URL']

        self.client = client or boto3.client(
            's3',
            endpoint_url=self.endpoint,
            aws_access_key_id=current_app.config['S3_ACCESS_KEY'],
            aws_secret_access_key=current_app.config['S3_SECRET_KEY'],
            region_name=current_app.config['S3_REGION'],
            config=BotoConfig(signature_version='s3v4')
        )

        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        """Create bucket with a public-read policy if it doesn't exist."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code not in ('404', 'NoSuchBucket'):
                logger.error(f"[STORAGE] Failed to check bucket: {e}")
                raise

            self.client.create_bucket(Bucket=self.bucket)
            policy = {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"AWS": "*"},
                        "Action": "s3:GetObject",
                        "Resource": f"arn:aws:s3:::{self.bucket}/*"
                    }
                ]
            }
            self.client.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(policy))
            logger.info(f"[STORAGE] Bucket '{self.bucket}' created with public-read policy")

    def upload_file(
        self,
        file: FileStorage,
        object_name: str,
        content_type: Optional[str] = None
    ) -> str:
        """
        Upload file to storage.

        Args:
            file: Werkzeug FileStorage object from request.files
            object_name: Object key (e.g. 'logo/3f2a.png')
            content_type: MIME type (auto-detected if None)

        Returns:
            Public URL of uploaded file

        Raises:
            ValidationError: If the file is missing, too large or of a disallowed type
            ClientError: If upload fails
        """
        self._validate_file(file)

        if not content_type:
            content_type = file.content_type or mimetypes.guess_type(file.filename)[0] or 'application/octet-stream'

        try:
            file.seek(0)
            self.client.upload_fileobj(
                file.stream,
                self.bucket,
                object_name,
                ExtraArgs={'ContentType': content_type, 'ACL': 'public-read'}
            )
        except ClientError as e:
            logger.exception(f"[STORAGE] Upload of '{object_name}' failed: {e}")
            raise

        url = self.get_public_url(object_name)
        logger.info(f"[STORAGE] File uploaded: {url}")
        return url

    def delete_file(self, object_name: str) -> bool:
        """Delete an object; returns False when storage refused."""
        try:
            self.client.delete_object(Bucket=self.bucket, Key=object_name)
            logger.info(f"[STORAGE] File deleted: {object_name}")
            return True
        except ClientError as e:
            logger.exception(f"[STORAGE] Delete of '{object_name}' failed: {e}")
            return False

    def get_public_url(self, object_name: str) -> str:
        return f"{self.public_url.rstrip('/')}/{self.bucket}/{object_name}"

    def object_name_from_url(self, url: Optional[str]) -> Optional[str]:
        """Inverse of get_public_url for URLs pointing into our bucket."""
        prefix = f"{self.public_url.rstrip('/')}/{self.bucket}/"
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None

    def _validate_file(self, file: FileStorage):
        if not file or not file.filename:
            raise ValidationError("No file was provided", field='logo')

        max_size = current_app.config.get('MAX_UPLOAD_SIZE', 2 * 1024 * 1024)
        file.seek(0, 2)
        file_size = file.tell()
        file.seek(0)

        if file_size > max_size:
            max_mb = max_size / (1024 * 1024)
            raise ValidationError(f"File is too large. Maximum {max_mb:.1f}MB", field='logo')

        allowed_types = current_app.config.get('ALLOWED_MIME_TYPES', set())
        content_type = file.content_type
        if allowed_types and content_type not in allowed_types:
            raise ValidationError(
                f"File type not allowed: {content_type}. Allowed: {', '.join(sorted(allowed_types))}",
                field='logo'
            )


# Singleton instance
_storage_service = None


def get_storage_service() -> StorageService:
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service


def upload_logo(file: FileStorage, previous_url: Optional[str] = None) -> str:
    """
    Store a new company logo and return its public URL.

    The previous logo is removed once the new one is stored.
    """
    if not file or not file.filename:
        raise ValidationError("No file was provided", field='logo')

    storage = get_storage_service()

    extension = mimetypes.guess_extension(file.content_type or '') or ''
    if not extension and file.filename and '.' in file.filename:
        extension = '.' + file.filename.rsplit('.', 1)[-1].lower()
    object_name = f"{LOGO_PREFIX}/{uuid.uuid4().hex}{extension}"

    url = storage.upload_file(file, object_name)

    old_object = storage.object_name_from_url(previous_url)
    if old_object:
        storage.delete_file(old_object)
    return url
