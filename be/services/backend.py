"""Backend client adapter: typed table access plus blob storage.

One ``BackendClient`` is built by the app factory and handed to every
service, so nothing below reaches for a module-level client.
"""
import functools
import logging
from contextlib import contextmanager

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from common.errors import BackendError
from models.file import File
from models.folder import Folder
from models.user import User
from services.storage.local_storage import LocalStorage
from services.storage.s3_storage import S3Storage
from utils.storage_path import build_blob_key, normalize_storage_path, with_user_prefix

logger = logging.getLogger(__name__)

# 文件管理器的类型筛选
IMAGE_PREFIX = 'image/'
DOCUMENT_TYPES = (
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.ms-powerpoint',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    'text/plain',
    'text/csv',
)
FILE_CATEGORIES = ('image', 'document', 'other')


def create_storage(config):
    """根据配置选择存储后端"""
    if config.get('STORAGE_BACKEND', 'local') == 's3':
        return S3Storage(
            bucket_name=config['S3_BUCKET'],
            endpoint_url=config.get('STORAGE_ENDPOINT_URL'),
            access_key=config.get('AWS_ACCESS_KEY'),
            secret_key=config.get('AWS_SECRET_KEY'),
            region_name=config.get('AWS_REGION'),
            public_base_url=config.get('STORAGE_PUBLIC_URL', ''),
        )
    return LocalStorage(
        bucket_name=config['S3_BUCKET'],
        upload_dir=config.get('UPLOAD_DIR', './uploads'),
        public_base_url=config.get('STORAGE_PUBLIC_URL', '/storage'),
    )


def _db_call(context):
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except SQLAlchemyError as e:
                raise BackendError(f"{context}: {e}") from e
        return wrapper
    return decorator


def _category_clause(category):
    if category == 'image':
        return File.file_type.like(f'{IMAGE_PREFIX}%')
    if category == 'document':
        return File.file_type.in_(DOCUMENT_TYPES)
    if category == 'other':
        return ~or_(File.file_type.like(f'{IMAGE_PREFIX}%'), File.file_type.in_(DOCUMENT_TYPES))
    raise ValueError(f"Unknown file category: {category}")


def _escape_like(term):
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


class BackendClient:
    def __init__(self, session, storage):
        self.session = session
        self.storage = storage

    @property
    def bucket(self):
        return self.storage.bucket

    # -------- 事务 --------
    @contextmanager
    def transaction(self):
        """Commit on success, roll back on any error.

        Constraint violations propagate unchanged so callers can map them;
        other database errors become ``BackendError``.
        """
        try:
            yield self.session
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            raise BackendError(f"Database error: {e}") from e
        except Exception:
            self.session.rollback()
            raise

    def add(self, row):
        self.session.add(row)
        return row

    # -------- users --------
    @_db_call("Error loading user")
    def get_user(self, user_id):
        if not user_id:
            return None
        return self.session.get(User, user_id)

    @_db_call("Error loading user")
    def find_user_by_email(self, email):
        return self.session.query(User).filter_by(email=email).first()

    # -------- files --------
    @_db_call("Error loading file")
    def get_file(self, file_id, user_id=None, include_deleted=False):
        query = self.session.query(File).filter(File.id == file_id)
        if user_id is not None:
            query = query.filter(File.user_id == user_id)
        if not include_deleted:
            query = query.filter(File.is_deleted.is_(False))
        return query.first()

    def _files_query(self, user_id):
        return self.session.query(File).filter(File.user_id == user_id, File.is_deleted.is_(False))

    @_db_call("Error loading files")
    def list_files(self, user_id, folder_id=None, all_folders=False, category=None, name_contains=None):
        query = self._files_query(user_id)
        if not all_folders:
            # folder_id 为 None 表示根目录
            query = query.filter(File.folder_id.is_(None) if folder_id is None else File.folder_id == folder_id)
        if category:
            query = query.filter(_category_clause(category))
        if name_contains:
            query = query.filter(File.file_name.ilike(f"%{_escape_like(name_contains)}%", escape='\\'))
        return query.order_by(File.id).all()

    @_db_call("Error counting files")
    def count_files(self, user_id):
        return self._files_query(user_id).count()

    @_db_call("Error loading recent files")
    def recent_files(self, user_id, limit=10):
        return self._files_query(user_id).order_by(File.uploaded_on.desc(), File.id.desc()).limit(limit).all()

    @_db_call("Error loading deleted files")
    def deleted_files(self, limit=1000):
        return (
            self.session.query(File)
            .filter(File.is_deleted.is_(True), File.blob_purged.is_(False), File.file_path != '')
            .order_by(File.id)
            .limit(limit)
            .all()
        )

    # -------- folders --------
    @_db_call("Error loading folder")
    def get_folder(self, folder_id, user_id=None, include_deleted=False):
        query = self.session.query(Folder).filter(Folder.id == folder_id)
        if user_id is not None:
            query = query.filter(Folder.user_id == user_id)
        if not include_deleted:
            query = query.filter(Folder.is_deleted.is_(False))
        return query.first()

    def _folders_query(self, user_id):
        return self.session.query(Folder).filter(Folder.user_id == user_id, Folder.is_deleted.is_(False))

    @_db_call("Error loading folders")
    def list_folders(self, user_id, parent_folder_id=None):
        query = self._folders_query(user_id)
        if parent_folder_id is None:
            query = query.filter(Folder.parent_folder_id.is_(None))
        else:
            query = query.filter(Folder.parent_folder_id == parent_folder_id)
        return query.order_by(Folder.folder_name, Folder.id).all()

    @_db_call("Error counting folders")
    def count_folders(self, user_id):
        return self._folders_query(user_id).count()

    # -------- blobs --------
    def upload_blob(self, user_id, file_name, data, content_type=None):
        """Store ``data`` under {user_id}/{uuid}_{file_name}.

        Returns:
            (path, public_url)
        """
        key = build_blob_key(user_id, file_name)
        try:
            self.storage.upload_file(key, data, content_type)
        except Exception as e:
            raise BackendError(f"Error uploading file: {e}") from e
        logger.info('Uploaded blob %s (%d bytes)', key, len(data))
        return key, self.storage.public_url(key)

    def download_blob(self, path, user_id=None):
        """Fetch a blob, retrying with the owner prefix when the stored path lacks it."""
        key = normalize_storage_path(path, self.bucket)
        if not key:
            raise BackendError("Error downloading file: File path cannot be empty")

        data, last_error = None, None
        try:
            data = self.storage.download_file(key)
        except Exception as e:
            last_error = e

        if not data and user_id:
            alt_key = with_user_prefix(key, user_id)
            if alt_key != key:
                logger.info('Blob %s not found, retrying as %s', key, alt_key)
                try:
                    data = self.storage.download_file(alt_key)
                except Exception as e:
                    last_error = e

        if not data:
            reason = last_error or "File is empty or not found"
            raise BackendError(f"Error downloading file: {reason}")
        return data

    def delete_blob(self, path, user_id):
        key = normalize_storage_path(path, self.bucket)
        if not key:
            raise BackendError("Error deleting file: File path cannot be empty")
        key = with_user_prefix(key, user_id)
        try:
            self.storage.delete_file(key)
        except Exception as e:
            raise BackendError(f"Error deleting file: {e}") from e
        logger.info('Deleted blob %s', key)

    def public_url(self, path):
        return self.storage.public_url(normalize_storage_path(path, self.bucket))
