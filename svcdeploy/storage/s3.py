#!/usr/bin/env python3
"""S3 storage backend for off-host backup copies."""

import os
from pathlib import Path

from .base import StorageBackend
from ..deployment.errors import ConfigError


class S3Storage(StorageBackend):
    """S3 storage backend for production mode."""

    def __init__(self, config):
        self.bucket = config.get('bucket_name')
        self.region = config.get('region', 'us-east-1')
        self.endpoint_url = config.get('endpoint_url')
        self.prefix = config.get('prefix', 'svcdeploy/')

        if not self.bucket:
            raise ConfigError("storage.s3.bucket_name is required for the s3 backend")
        self._validate_credentials()
        self._client = None

    def _validate_credentials(self):
        """Validate required AWS credentials are set."""
        missing = []
        if 'AWS_ACCESS_KEY_ID' not in os.environ:
            missing.append('AWS_ACCESS_KEY_ID')
        if 'AWS_SECRET_ACCESS_KEY' not in os.environ:
            missing.append('AWS_SECRET_ACCESS_KEY')

        if missing:
            raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

    def _get_client(self):
        """Lazy initialization of boto3 client."""
        if self._client is None:
            import boto3
            self._client = boto3.client(
                's3',
                endpoint_url=self.endpoint_url,
                aws_access_key_id=os.environ['AWS_ACCESS_KEY_ID'],
                aws_secret_access_key=os.environ['AWS_SECRET_ACCESS_KEY'],
                region_name=self.region
            )
        return self._client

    def _key(self, storage_key):
        return f"{self.prefix}{storage_key}"

    def _get_s3_url(self, storage_key):
        return f"s3://{self.bucket}/{self._key(storage_key)}"

    def upload_file(self, local_path, storage_key):
        s3_client = self._get_client()
        s3_url = self._get_s3_url(storage_key)
        print(f"Uploading to S3: {s3_url}")
        s3_client.upload_file(str(local_path), self.bucket, self._key(storage_key))
        print("[OK] Uploaded")
        return s3_url

    def download_file(self, storage_key, local_path):
        s3_client = self._get_client()
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        print(f"Downloading from S3: {self._get_s3_url(storage_key)}")
        s3_client.download_file(self.bucket, self._key(storage_key), str(local_path))
        print("[OK] Downloaded")
        return str(local_path)

    def delete_file(self, storage_key):
        s3_client = self._get_client()
        s3_client.delete_object(Bucket=self.bucket, Key=self._key(storage_key))
