"""S3-compatible artifact store used for audit screenshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from app.features.audits.exceptions import ArtifactStoreError

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most this many keys per request
MAX_DELETE_BATCH = 1000


@dataclass
class DeleteSummary:
    requested: int = 0
    deleted: int = 0
    batches: int = 0
    failed_batches: int = 0
    failed_keys: List[str] = field(default_factory=list)


class ArtifactStore:
    """
    Upload, sign and delete binary objects by key.

    The boto3 client is created on first use so constructing the store (for a
    request or a worker job) never touches the network.
    """

    def __init__(
        self,
        *,
        bucket: str,
        signed_url_expires_seconds: int = 900,
        endpoint_url: Optional[str] = None,
        region_name: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        client=None,
    ) -> None:
        self.bucket = bucket
        self.signed_url_expires_seconds = signed_url_expires_seconds
        self._endpoint_url = endpoint_url
        self._region_name = region_name
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "ArtifactStore":
        if not settings.s3_credentials_configured:
            logger.warning(
                "S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY and S3_BUCKET_NAME should be set; "
                "screenshot uploads will fail"
            )
        return cls(
            bucket=settings.S3_BUCKET_NAME,
            signed_url_expires_seconds=settings.S3_SIGNED_URL_EXPIRES_SECONDS,
            endpoint_url=settings.S3_ENDPOINT,
            region_name=settings.S3_REGION,
            access_key_id=settings.S3_ACCESS_KEY_ID or None,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY or None,
        )

    def _client_factory(self):
        import boto3

        # MinIO and most self-hosted stores need path-style addressing
        boto_config = BotoConfig(
            signature_version="s3v4",
            s3={"addressing_style": "path" if self._endpoint_url else "auto"},
        )
        return boto3.client(
            "s3",
            endpoint_url=self._endpoint_url,
            region_name=self._region_name,
            aws_access_key_id=self._access_key_id,
            aws_secret_access_key=self._secret_access_key,
            config=boto_config,
        )

    @property
    def client(self):
        if self._client is None:
            try:
                self._client = self._client_factory()
            except (ValueError, ClientError, BotoCoreError) as e:
                # e.g. a malformed S3_ENDPOINT is only rejected here
                logger.error(f"Error creating S3 client for bucket {self.bucket}: {e}")
                raise ArtifactStoreError(f"S3 client unavailable: {e}") from e
        return self._client

    def upload(self, object_key: str, body: bytes, content_type: str = "image/png") -> str:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=object_key,
                Body=body,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading {object_key} to bucket {self.bucket}: {e}")
            raise ArtifactStoreError(f"upload of {object_key} failed: {e}") from e

        logger.debug(f"Uploaded {object_key} to bucket {self.bucket}")
        return object_key

    def sign(self, object_key: str) -> str:
        """Return a time-bounded GET link for ``object_key``."""
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": object_key},
                ExpiresIn=self.signed_url_expires_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error generating signed URL for {object_key} in bucket {self.bucket}: {e}")
            raise ArtifactStoreError(f"signing of {object_key} failed: {e}") from e

    def delete_many(self, object_keys: Sequence[str]) -> DeleteSummary:
        """
        Delete ``object_keys`` in chunks of ``MAX_DELETE_BATCH``.

        Every chunk is its own request. A failing chunk is logged and recorded
        in the summary; the remaining chunks are still issued.
        """
        summary = DeleteSummary(requested=len(object_keys))

        for start in range(0, len(object_keys), MAX_DELETE_BATCH):
            chunk = list(object_keys[start:start + MAX_DELETE_BATCH])
            summary.batches += 1
            try:
                response = self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={
                        "Objects": [{"Key": key} for key in chunk],
                        "Quiet": True,
                    },
                )
            except (ClientError, BotoCoreError, ArtifactStoreError) as e:
                logger.error(
                    f"Error deleting batch {summary.batches} ({len(chunk)} objects) "
                    f"from bucket {self.bucket}: {e}"
                )
                summary.failed_batches += 1
                summary.failed_keys.extend(chunk)
                continue

            errors = (response or {}).get("Errors") or []
            for error in errors:
                logger.warning(
                    f"Object {error.get('Key')} not deleted from bucket {self.bucket}: "
                    f"{error.get('Code')} {error.get('Message')}"
                )
            failed = [error.get("Key") for error in errors if error.get("Key")]
            summary.failed_keys.extend(failed)
            summary.deleted += len(chunk) - len(failed)

        return summary
