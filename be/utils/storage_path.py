import uuid


def build_blob_key(user_id, file_name):
    """Key layout used by the bucket: {user_id}/{uuid}_{file_name}."""
    return f"{user_id}/{uuid.uuid4()}_{file_name}"


def normalize_storage_path(path, bucket):
    """Turn a stored path (or full public URL) into a bucket-relative key.

    Backslashes become slashes, a leading slash is dropped and a public URL
    is cut down to whatever follows /{bucket}/.
    """
    path = (path or '').replace('\\', '/').lstrip('/')
    if path.lower().startswith('http'):
        marker = f"/{bucket}/".lower()
        idx = path.lower().find(marker)
        if idx >= 0:
            path = path[idx + len(marker):]
    return path


def with_user_prefix(path, user_id):
    prefix = f"{user_id}/"
    if path.lower().startswith(prefix.lower()):
        return path
    return prefix + path
