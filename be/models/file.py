from decimal import Decimal
from models.base import BaseModel, utcnow
from common.db import db

BYTES_PER_MB = Decimal(1024 * 1024)


def bytes_to_mb(size_bytes):
    return Decimal(size_bytes) / BYTES_PER_MB


class File(BaseModel):
    __tablename__ = 'files'

    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(512), nullable=False, default='')  # 存储 key：{user_id}/{uuid}_{file_name}
    file_type = db.Column(db.String(255), nullable=False, default='')
    file_size = db.Column(db.BigInteger, nullable=False, default=0)
    uploaded_on = db.Column(db.DateTime, nullable=False, default=utcnow)
    folder_id = db.Column(db.Integer, db.ForeignKey('folders.id'), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    blob_purged = db.Column(db.Boolean, nullable=False, default=False)  # 软删除后 blob 已物理删除
    storage_url = db.Column(db.String(1024), nullable=False, default='')

    __table_args__ = (
        db.Index('idx_files_owner_folder', 'user_id', 'folder_id', 'is_deleted'),
        db.Index('idx_files_owner_recent', 'user_id', 'uploaded_on'),
    )

    @property
    def size_mb(self):
        return bytes_to_mb(self.file_size or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'fileName': self.file_name,
            'filePath': self.file_path,
            'fileType': self.file_type,
            'fileSize': self.file_size,
            'uploadedOn': self.uploaded_on.isoformat() if self.uploaded_on else None,
            'folderId': self.folder_id,
            'version': self.version,
            'isDeleted': self.is_deleted,
            'storageUrl': self.storage_url,
        }
