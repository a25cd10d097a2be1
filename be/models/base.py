from datetime import datetime, timezone
from common.db import db


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(db.Model):
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True)

    def __repr__(self):
        return f'<{type(self).__name__} {self.id}>'
