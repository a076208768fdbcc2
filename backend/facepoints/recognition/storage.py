import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from facepoints.errors import StorageUnavailable


class LocalPhotoStore:
    """Keeps enrollment photos on the local filesystem."""

    def __init__(self, directory):
        self.directory = directory

    def save(self, image: bytes, name: str) -> str:
        os.makedirs(self.directory, exist_ok=True)
        path = os.path.join(self.directory, f"{name}.jpg")
        try:
            with open(path, 'wb') as fh:
                fh.write(image)
        except OSError as exc:
            raise StorageUnavailable() from exc
        return path

    def delete(self, ref: str) -> None:
        try:
            os.remove(ref)
        except FileNotFoundError:
            pass


class S3PhotoStore:
    """Keeps enrollment photos in an S3 bucket under ``faces/``."""

    def __init__(self, bucket, client=None, region_name=None, prefix='faces/'):
        self.bucket = bucket
        self.prefix = prefix
        self.client = client or boto3.client('s3', region_name=region_name)

    def save(self, image: bytes, name: str) -> str:
        key = f"{self.prefix}{name}.jpg"
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=image, ContentType='image/jpeg')
        except (ClientError, BotoCoreError) as exc:
            raise StorageUnavailable() from exc
        return f"s3://{self.bucket}/{key}"

    def delete(self, ref: str) -> None:
        key = ref.split(f"s3://{self.bucket}/", 1)[-1]
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StorageUnavailable() from exc
