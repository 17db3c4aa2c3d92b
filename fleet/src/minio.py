from typing import BinaryIO
from minio import Minio
from fleet.src.constants import MINIO_HOST, MINIO_PASSWORD, MINIO_PORT, MINIO_USERNAME

client: Minio = Minio(
    endpoint=f"{MINIO_HOST}:{MINIO_PORT}",
    access_key=MINIO_USERNAME,
    secret_key=MINIO_PASSWORD,
    secure=False,
)


def createBucket(bucketName: str) -> None:
    """Create the bucket unless it already exists."""
    if not client.bucket_exists(bucketName):
        client.make_bucket(bucketName)


def deleteBucket(bucketName: str) -> None:
    """Empty and remove a bucket, ignoring buckets that do not exist."""
    if not client.bucket_exists(bucketName):
        return
    for object in client.list_objects(bucketName):
        client.remove_object(bucketName, object.object_name)
    client.remove_bucket(bucketName)


def downloadFile(bucketName: str, objectID: str) -> bytes:
    """Whole content of an object. A missing object raises `S3Error`."""
    response = client.get_object(bucketName, objectID)
    try:
        return response.data
    finally:
        response.close()
        response.release_conn()


def deleteFile(bucketName: str, objectID: str) -> None:
    client.remove_object(bucketName, objectID)


def uploadFile(
    bucketName: str,
    objectID: str,
    size: int,
    fileObject: BinaryIO,
    contentType: str = "application/octet-stream",
) -> None:
    """Store `size` bytes read from `fileObject` as `bucketName/objectID`."""
    client.put_object(bucketName, objectID, fileObject, size, content_type=contentType)
