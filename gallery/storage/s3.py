import boto3
from typing import Optional
from botocore.exceptions import BotoCoreError, ClientError
from gallery.settings import settings
import logging

log = logging.getLogger(__name__)

# one year, for originals and thumbnails alike
LONG_CACHE_CONTROL = "max-age=31536000"

class ObjectExistsError(Exception):
    """Raised when an upload would overwrite an existing key."""

# -------------------------
# S3 Service
# -------------------------
class S3Service:
    def __init__(self):
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.client = session.client("s3", **kwargs)
        self.bucket = settings.s3_bucket
        log.info("Initialized S3 client")

        # Ensure bucket exists at initialization
        self.ensure_bucket()

    def ensure_bucket(self):
        try:
            self.client.head_bucket(Bucket=self.bucket)
            log.debug("Bucket %s already exists", self.bucket)
        except ClientError as e:
            error_code = int(e.response["Error"]["Code"])
            if error_code == 404:
                self.client.create_bucket(Bucket=self.bucket)
                log.info("Created bucket %s", self.bucket)
            else:
                log.error("Failed to check/create bucket: %s", e)
                raise

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                return False
            raise

    def upload(self, fileobj, key: str, content_type: str, cache_control: str = LONG_CACHE_CONTROL, overwrite: bool = False):
        """Uploads a file object; refuses to replace an existing key unless overwrite is set."""
        if not overwrite and self.exists(key):
            raise ObjectExistsError(f"s3://{self.bucket}/{key} already exists")
        self.client.upload_fileobj(
            Fileobj=fileobj,
            Bucket=self.bucket,
            Key=key,
            ExtraArgs={"ContentType": content_type, "CacheControl": cache_control},
        )
        log.debug("Uploaded %s to s3://%s/%s", key, self.bucket, key)

    def generate_presigned_url(self, key: str, expires_in: int) -> Optional[str]:
        """Returns a time-limited GET URL for key, or None when signing fails."""
        try:
            url = self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            log.warning("Failed to sign s3://%s/%s: %s", self.bucket, key, e)
            return None
        if settings.external_endpoint and settings.aws_endpoint_url:
            url = url.replace(settings.aws_endpoint_url, settings.external_endpoint)
        return url

    def delete(self, key: str):
        self.client.delete_object(Bucket=self.bucket, Key=key)
        log.debug("Deleted s3://%s/%s", self.bucket, key)

    def close(self):
        log.info("Closed S3 client")
