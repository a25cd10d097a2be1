# services/storage/local_storage.py
import os
from services.storage.base_storage import BaseStorage


class LocalStorage(BaseStorage):
    def __init__(self, bucket_name, upload_dir='./uploads', public_base_url='/storage'):
        super().__init__(bucket_name, public_base_url)
        self.root = os.path.abspath(os.path.join(upload_dir, bucket_name))

    def _path_for(self, key):
        path = os.path.abspath(os.path.join(self.root, key))
        # key 不能跳出 bucket 目录
        if os.path.commonpath([self.root, path]) != self.root:
            raise ValueError(f"Invalid storage key: {key}")
        return path

    def upload_file(self, key, data, content_type=None):
        path = self._path_for(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as f:
            f.write(data)

    def download_file(self, key):
        with open(self._path_for(key), 'rb') as f:
            return f.read()

    def delete_file(self, key):
        path = self._path_for(key)
        if os.path.exists(path):
            os.remove(path)
