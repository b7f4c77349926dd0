"""S3 source for sops-encrypted files."""
import logging
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from .errors import BlobNotFoundError
from .models import BlobLocator

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "NoSuchBucket", "404"}


class S3BlobSource:
    """Fetches encrypted blobs from S3 using boto3's standard credential chain."""

    def __init__(self, region: Optional[str] = None, client=None):
        self._region = region
        self._client = client

    @property
    def client(self):
        """Lazy-initialize client."""
        if self._client is None:
            if self._region:
                self._client = boto3.client("s3", region_name=self._region)
            else:
                self._client = boto3.client("s3")
        return self._client

    def fetch(self, locator: BlobLocator) -> bytes:
        """
        Read an encrypted blob.

        Raises:
            BlobNotFoundError: If the bucket or key does not exist
        """
        logger.debug(f"Fetching s3://{locator.bucket}/{locator.key}")
        try:
            response = self.client.get_object(Bucket=locator.bucket, Key=locator.key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in _MISSING_CODES:
                raise BlobNotFoundError(
                    f"Encrypted source not found: s3://{locator.bucket}/{locator.key}"
                ) from e
            raise

        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()
