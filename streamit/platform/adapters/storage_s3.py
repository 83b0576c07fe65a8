from typing import BinaryIO, Iterator
import boto3
from botocore.client import Config
from botocore.exceptions import ClientError
from streamit.platform.ports.object_storage import ObjectStoragePort
from streamit.core.config import settings

_MISSING = {"404", "NoSuchKey", "NotFound"}

class S3Storage(ObjectStoragePort):
    def __init__(self):
        session = boto3.session.Session(
            aws_access_key_id=settings.S3_ACCESS_KEY,
            aws_secret_access_key=settings.S3_SECRET_KEY,
            region_name=settings.S3_REGION,
        )
        self.s3 = session.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            config=Config(signature_version="s3v4"),
        )
        self.bucket = settings.S3_BUCKET

    def put_fileobj(self, key: str, fileobj: BinaryIO, content_type: str) -> int:
        fileobj.seek(0, 2)
        size = fileobj.tell()
        fileobj.seek(0)
        self.s3.upload_fileobj(fileobj, self.bucket, key, ExtraArgs={"ContentType": content_type})
        return size

    def size(self, key: str) -> int | None:
        try:
            head = self.s3.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING:
                return None
            raise
        return int(head["ContentLength"])

    def exists(self, key: str) -> bool:
        return self.size(key) is not None

    def iter_range(self, key: str, start: int, end: int, chunk_size: int) -> Iterator[bytes]:
        try:
            obj = self.s3.get_object(Bucket=self.bucket, Key=key, Range=f"bytes={start}-{end}")
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING:
                raise FileNotFoundError(key) from e
            raise
        return obj["Body"].iter_chunks(chunk_size=chunk_size)

    def probe_source(self, key: str) -> str:
        # ffprobe reads http(s) inputs directly
        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=900,
        )

    def delete(self, key: str) -> None:
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING:
                return
            raise OSError(f"could not delete {key}: {e}") from e
