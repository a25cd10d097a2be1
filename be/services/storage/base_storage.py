# services/storage/base_storage.py
from abc import ABC, abstractmethod


class BaseStorage(ABC):
    """Blob store addressed by object key inside a single bucket."""

    def __init__(self, bucket_name, public_base_url=''):
        self.bucket = bucket_name
        self.public_base_url = public_base_url.rstrip('/')

    @abstractmethod
    def upload_file(self, key, data, content_type=None):
        pass

    @abstractmethod
    def download_file(self, key):
        """Return the blob bytes. Raise if the key does not exist."""
        pass

    @abstractmethod
    def delete_file(self, key):
        """Remove the blob. Removing a missing key is not an error."""
        pass

    def public_url(self, key):
        return f"{self.public_base_url}/{self.bucket}/{key}"
