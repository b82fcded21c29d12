import json
import logging
from io import BytesIO
from urllib.parse import quote

from minio import Minio
from minio.error import MinioException, S3Error
from fileshare_client.exceptions import MinioError, ObjectExistsError, StorageNotReadyError
from fileshare_client.utils.aio import run_io_bound
from fileshare_client.config import MinioConfig
import urllib3

logger = logging.getLogger(__name__)
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

# Anything the SDK or its transport raises for a failed request.
_TRANSPORT_ERRORS = (MinioException, urllib3.exceptions.HTTPError, OSError)
_MISSING_KEY_CODES = {"NoSuchKey", "NoSuchObject", "ResourceNotFound"}


def _public_read_policy(bucket: str) -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"AWS": ["*"]},
            "Action": ["s3:GetObject"],
            "Resource": [f"arn:aws:s3:::{bucket}/*"],
        }],
    })


class MinioRepository:
    """Object store client. Keys are storage keys produced by the key deriver."""

    def __init__(self, settings: MinioConfig, client: Minio | None = None):
        if client is None:
            http_client = None
            if settings.secure:
                http_client = urllib3.PoolManager(
                    cert_reqs='CERT_NONE',
                )
            client = Minio(
                endpoint=settings.endpoint,
                access_key=settings.accesskey,
                secret_key=settings.secretkey,
                secure=settings.secure,
                http_client=http_client
            )
        self._client = client
        self._settings = settings
        self._bucket = settings.bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    async def bucket_exists(self) -> bool:
        try:
            return await run_io_bound(self._client.bucket_exists, self._bucket)
        except _TRANSPORT_ERRORS as e:
            raise MinioError(f"Bucket probe failed: {e}") from e

    async def ensure_bucket(self) -> bool:
        """
        Bootstrap only: creates the bucket with a public-read policy.
        Returns True when the bucket was created by this call.
        Ingestion never calls this; a missing bucket there is a hard stop.
        """
        if await self.bucket_exists():
            return False
        try:
            await run_io_bound(self._client.make_bucket, self._bucket)
            await run_io_bound(self._client.set_bucket_policy, self._bucket, _public_read_policy(self._bucket))
        except _TRANSPORT_ERRORS as e:
            raise MinioError(f"Failed to create bucket '{self._bucket}': {e}") from e
        logger.info(f"Bucket '{self._bucket}' created with public-read policy.")
        return True

    async def check_connection(self):
        """Checks that MinIO answers and the bucket is present."""
        logger.debug(f"Checking MinIO connection and bucket '{self._bucket}' existence...")
        if not await self.bucket_exists():
            raise StorageNotReadyError(f"Bucket '{self._bucket}' does not exist.")
        logger.debug("MinIO connection and bucket presence confirmed.")

    async def object_exists(self, object_name: str) -> bool:
        try:
            await run_io_bound(self._client.stat_object, self._bucket, object_name)
            return True
        except S3Error as e:
            if e.code in _MISSING_KEY_CODES:
                return False
            raise MinioError(str(e)) from e
        except _TRANSPORT_ERRORS as e:
            raise MinioError(str(e)) from e

    async def put_object(self, object_name: str, data: bytes, content_type: str | None = None,
                         overwrite: bool = False):
        if not overwrite and await self.object_exists(object_name):
            raise ObjectExistsError(f"Object '{object_name}' already exists.")
        try:
            await run_io_bound(
                self._client.put_object,
                self._bucket,
                object_name,
                BytesIO(data),
                len(data),
                content_type=content_type or "application/octet-stream",
            )
        except _TRANSPORT_ERRORS as e:
            raise MinioError(str(e)) from e

    async def get_object(self, object_name: str) -> bytes:
        try:
            resp = await run_io_bound(self._client.get_object, self._bucket, object_name)
            try:
                return resp.read()
            finally:
                resp.close()
                resp.release_conn()
        except _TRANSPORT_ERRORS as e:
            raise MinioError(str(e)) from e

    async def remove_object(self, object_name: str):
        """Idempotent: a key that is already gone is not an error."""
        try:
            await run_io_bound(self._client.remove_object, self._bucket, object_name)
        except S3Error as e:
            if e.code in _MISSING_KEY_CODES:
                logger.debug(f"Object '{object_name}' already absent.")
                return
            raise MinioError(str(e)) from e
        except _TRANSPORT_ERRORS as e:
            raise MinioError(str(e)) from e

    def public_url(self, object_name: str) -> str:
        key = quote(object_name)
        if self._settings.public_base_url:
            return f"{self._settings.public_base_url.rstrip('/')}/{key}"
        scheme = "https" if self._settings.secure else "http"
        return f"{scheme}://{self._settings.endpoint}/{self._bucket}/{key}"
