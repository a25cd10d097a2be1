# services/file_service.py
import logging
import mimetypes
from collections import deque
from decimal import Decimal

from common.errors import BackendError, NotFoundError, StorageLimitExceeded, ValidationError
from models.file import File, bytes_to_mb
from models.folder import Folder
from services.backend import FILE_CATEGORIES

logger = logging.getLogger(__name__)

RECENT_FILES_LIMIT = 10
DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def _base_name(file_name):
    return (file_name or '').replace('\\', '/').rsplit('/', 1)[-1].strip()


class FileService:
    def __init__(self, backend):
        self.backend = backend

    # -------- 查询 --------
    def list_files(self, user_id, folder_id=None, file_type=None):
        if file_type and file_type not in FILE_CATEGORIES:
            raise ValidationError(f"Unknown file type filter: {file_type}")
        return self.backend.list_files(user_id, folder_id=folder_id, category=file_type)

    def list_folders(self, user_id, parent_folder_id=None):
        return self.backend.list_folders(user_id, parent_folder_id=parent_folder_id)

    def get_folder(self, folder_id, user_id):
        return self.backend.get_folder(folder_id, user_id)

    def get_file(self, file_id, user_id):
        record = self.backend.get_file(file_id, user_id)
        if record is None:
            raise NotFoundError("File not found")
        return record

    def search(self, user_id, term, recursive=False):
        """Case-insensitive substring match on file names.

        Only root-level files are searched unless ``recursive`` is set. An
        empty term matches every file in scope.
        """
        term = (term or '').strip()
        return self.backend.list_files(user_id, folder_id=None, all_folders=recursive, name_contains=term or None)

    def get_folder_path(self, folder_id, user_id=None):
        """Build "/A/B/target" by walking parent links up to the root."""
        if folder_id is None:
            return "/"

        names = []
        visited = set()
        current = folder_id
        while current is not None:
            if current in visited:
                logger.warning('Folder cycle detected at %s while resolving path of %s', current, folder_id)
                break
            visited.add(current)
            folder = self.backend.get_folder(current, user_id, include_deleted=True)
            if folder is None:
                break
            names.append(folder.folder_name)
            current = folder.parent_folder_id

        names.reverse()
        return "/" + "/".join(names)

    def get_dashboard(self, user_id):
        user = self.backend.get_user(user_id)
        used = Decimal(user.storage_used_mb) if user else Decimal('0')
        limit = Decimal(user.storage_limit_mb) if user else Decimal('1024')
        return {
            "user_name": (user.full_name if user and user.full_name else "User"),
            "storage_used": used,
            "storage_limit": limit,
            "storage_percent": float(used / limit * 100) if limit else 0.0,
            "total_files": self.backend.count_files(user_id),
            "total_folders": self.backend.count_folders(user_id),
            "recent_files": self.backend.recent_files(user_id, RECENT_FILES_LIMIT),
        }

    # -------- 文件夹 --------
    def create_folder(self, user_id, name, parent_folder_id=None):
        name = (name or '').strip()
        if not name:
            raise ValidationError("Folder name is required")
        if parent_folder_id is not None and self.backend.get_folder(parent_folder_id, user_id) is None:
            raise NotFoundError("Parent folder not found")

        folder = Folder(user_id=user_id, folder_name=name, parent_folder_id=parent_folder_id)
        with self.backend.transaction():
            self.backend.add(folder)
        logger.info('Created folder %s "%s" (parent=%s) for user %s', folder.id, name, parent_folder_id, user_id)
        return folder

    def collect_folder_files(self, folder_id, user_id):
        """All non-deleted files under ``folder_id``, subfolders included."""
        _, files = self._walk_subtree(folder_id, user_id)
        return files

    def _walk_subtree(self, folder_id, user_id):
        folders, files = [], []
        visited = set()
        queue = deque([folder_id])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            files.extend(self.backend.list_files(user_id, folder_id=current))
            for sub in self.backend.list_folders(user_id, parent_folder_id=current):
                folders.append(sub)
                queue.append(sub.id)
        return folders, files

    def delete_folder(self, folder_id, user_id):
        """Soft-delete a folder, its subfolders and every file beneath it.

        A failure on one file is logged and the rest are still processed.

        Returns:
            dict with ``deleted`` count and ``failed`` file ids.
        """
        folder = self.backend.get_folder(folder_id, user_id)
        if folder is None:
            raise NotFoundError("Folder not found")

        subfolders, files = self._walk_subtree(folder.id, user_id)
        with self.backend.transaction():
            folder.is_deleted = True
            for sub in subfolders:
                sub.is_deleted = True

        deleted, failed = 0, []
        for record in files:
            try:
                self.delete_file(record.id, user_id)
                deleted += 1
            except Exception:
                logger.exception('Failed to delete file %s while deleting folder %s', record.id, folder_id)
                failed.append(record.id)

        logger.info(
            'Deleted folder %s (%d subfolders): %d files deleted, %d failed',
            folder_id, len(subfolders), deleted, len(failed),
        )
        return {"deleted": deleted, "failed": failed}

    def rename(self, user_id, item_id, new_name, is_folder=False):
        new_name = (new_name or '').strip()
        if not new_name:
            raise ValidationError("New name is required")

        if is_folder:
            item = self.backend.get_folder(item_id, user_id)
            if item is None:
                raise NotFoundError("Folder not found")
            with self.backend.transaction():
                item.folder_name = new_name
        else:
            item = self.backend.get_file(item_id, user_id)
            if item is None:
                raise NotFoundError("File not found")
            with self.backend.transaction():
                item.file_name = new_name
        return item

    # -------- 文件 --------
    def upload(self, user_id, data, file_name, folder_id=None, content_type=None):
        file_name = _base_name(file_name)
        if not file_name:
            raise ValidationError("File name is required")

        user = self.backend.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if folder_id is not None and self.backend.get_folder(folder_id, user_id) is None:
            raise NotFoundError("Folder not found")

        size_mb = bytes_to_mb(len(data))
        if not user.has_space_for(size_mb):
            logger.warning(
                'Storage limit exceeded for user %s: used %s MB, limit %s MB, need %s MB',
                user_id, user.storage_used_mb, user.storage_limit_mb, size_mb,
            )
            raise StorageLimitExceeded(user.storage_limit_mb, user.storage_used_mb, size_mb)

        if not content_type or content_type == DEFAULT_CONTENT_TYPE:
            content_type = mimetypes.guess_type(file_name)[0] or content_type or DEFAULT_CONTENT_TYPE

        # 先上传 blob，再在同一事务中写入文件记录和用量
        path, url = self.backend.upload_blob(user_id, file_name, data, content_type)
        record = File(
            user_id=user_id,
            file_name=file_name,
            file_path=path,
            file_type=content_type,
            file_size=len(data),
            folder_id=folder_id,
            storage_url=url,
            is_deleted=False,
            version=1,
        )
        try:
            with self.backend.transaction():
                self.backend.add(record)
                user.storage_used_mb = Decimal(user.storage_used_mb) + size_mb
        except Exception:
            logger.exception('Database transaction failed, rolling back storage upload: %s', path)
            try:
                self.backend.delete_blob(path, user_id)
            except BackendError:
                logger.exception('Rollback of uploaded blob failed (orphaned): %s', path)
            raise

        logger.info('Uploaded file %s "%s" (%d bytes) for user %s', record.id, file_name, record.file_size, user_id)
        return record

    def download(self, file_id, user_id):
        record = self.get_file(file_id, user_id)
        return record, self.backend.download_blob(record.file_path, user_id)

    def delete_file(self, file_id, user_id):
        record = self.backend.get_file(file_id, user_id)
        if record is None:
            raise NotFoundError("File not found")

        user = self.backend.get_user(user_id)
        with self.backend.transaction():
            record.is_deleted = True
            if user is not None:
                remaining = Decimal(user.storage_used_mb) - record.size_mb
                user.storage_used_mb = max(Decimal('0'), remaining)
        logger.info('Soft-deleted file %s for user %s', file_id, user_id)

        # 物理删除失败只记录日志，由 flask purge-blobs 重试
        if record.file_path:
            try:
                self.backend.delete_blob(record.file_path, user_id)
            except BackendError:
                logger.exception('Failed to delete blob from storage: %s', record.file_path)
            else:
                try:
                    self._mark_purged(record)
                except BackendError:
                    logger.exception('Failed to record blob removal for file %s', record.id)
        return record

    def _mark_purged(self, record):
        with self.backend.transaction():
            record.blob_purged = True

    def purge_deleted_blobs(self, batch_size=1000, dry_run=False):
        """Re-issue blob removal for soft-deleted files not yet purged.

        Each successful removal is recorded on the row, so repeated runs
        move through the backlog ``batch_size`` files at a time.

        Returns:
            (purged, failed) counts.
        """
        purged, failed = 0, 0
        for record in self.backend.deleted_files(limit=batch_size):
            if dry_run:
                logger.info('Would purge blob %s (file %s)', record.file_path, record.id)
                purged += 1
                continue
            try:
                self.backend.delete_blob(record.file_path, record.user_id)
            except BackendError:
                logger.exception('Failed to purge blob %s (file %s)', record.file_path, record.id)
                failed += 1
                continue
            self._mark_purged(record)
            purged += 1
        return purged, failed
