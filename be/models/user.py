import uuid
from decimal import Decimal
from models.base import BaseModel, utcnow
from common.db import db


class User(BaseModel):
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    full_name = db.Column(db.String(255), nullable=False, default='')
    storage_used_mb = db.Column(db.Numeric(20, 10), nullable=False, default=Decimal('0'))
    storage_limit_mb = db.Column(db.Numeric(20, 10), nullable=False, default=Decimal('1024'))
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def role(self):
        return 'Admin' if self.is_admin else 'User'

    def has_space_for(self, size_mb):
        return Decimal(self.storage_used_mb or 0) + size_mb <= Decimal(self.storage_limit_mb)
