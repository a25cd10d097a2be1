# services/storage/s3_storage.py
import boto3
from botocore.exceptions import ClientError
from services.storage.base_storage import BaseStorage


class S3Storage(BaseStorage):
    """S3 兼容对象存储（托管平台的 S3 endpoint、MinIO、AWS）"""

    def __init__(self, bucket_name, endpoint_url=None, access_key=None, secret_key=None,
                 region_name=None, public_base_url=''):
        super().__init__(bucket_name, public_base_url)
        self.s3 = boto3.client(
            's3',
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region_name,
        )

    def upload_file(self, key, data, content_type=None):
        extra = {'ContentType': content_type} if content_type else {}
        self.s3.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)

    def download_file(self, key):
        try:
            obj = self.s3.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise FileNotFoundError(key) from e
            raise
        return obj["Body"].read()

    def delete_file(self, key):
        # S3 删除不存在的 key 也返回成功
        self.s3.delete_object(Bucket=self.bucket, Key=key)
