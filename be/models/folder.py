from models.base import BaseModel, utcnow
from common.db import db


class Folder(BaseModel):
    """文件夹表 - parent_folder_id 自关联构成每个用户的目录树"""
    __tablename__ = 'folders'

    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    folder_name = db.Column(db.String(255), nullable=False)
    parent_folder_id = db.Column(db.Integer, db.ForeignKey('folders.id'), nullable=True)
    created_on = db.Column(db.DateTime, nullable=False, default=utcnow)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    __table_args__ = (
        db.Index('idx_folders_owner_parent', 'user_id', 'parent_folder_id', 'is_deleted'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'folderName': self.folder_name,
            'parentFolderId': self.parent_folder_id,
            'createdOn': self.created_on.isoformat() if self.created_on else None,
            'isDeleted': self.is_deleted,
        }
