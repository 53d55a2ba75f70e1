from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone
from sqlalchemy import func

db = SQLAlchemy()


def utcnow():
    """Naive UTC now, matching how expiry columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(dt):
    return dt.isoformat() if dt else None


def iso_utc(dt):
    return dt.replace(microsecond=0).isoformat() + 'Z' if dt else None


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.Text, nullable=False, unique=True, index=True)
    password_hash = db.Column(db.Text, nullable=False)
    email_verified = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {'id': self.id, 'email': self.email, 'emailVerified': bool(self.email_verified)}


class Page(db.Model):
    __tablename__ = 'pages'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.Text, nullable=False)
    slug = db.Column(db.String(32), nullable=False, unique=True)
    content = db.Column(db.JSON, nullable=False, default=dict)
    is_published = db.Column(db.Boolean, nullable=False, default=False)
    qr_expiry_minutes = db.Column(db.Integer)  # null = no expiry
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    access_tokens = db.relationship('PageAccessToken', backref='page', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'title': self.title,
            'slug': self.slug,
            'content': self.content or {},
            'isPublished': bool(self.is_published),
            'qrExpiryMinutes': self.qr_expiry_minutes,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def to_public_dict(self):
        return {'id': self.id, 'title': self.title, 'slug': self.slug, 'content': self.content or {}}


class PageAccessToken(db.Model):
    __tablename__ = 'page_access_tokens'
    id = db.Column(db.Integer, primary_key=True)
    page_id = db.Column(db.Integer, db.ForeignKey('pages.id', ondelete='CASCADE'), nullable=False, index=True)
    token = db.Column(db.String(64), nullable=False, unique=True)
    expires_at = db.Column(db.DateTime, nullable=False)  # naive UTC
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())


class WebhookEndpoint(db.Model):
    __tablename__ = 'webhook_endpoints'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.Text, nullable=False)
    url = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'name': self.name,
            'url': self.url,
            'description': self.description,
            'isActive': bool(self.is_active),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class UploadedFile(db.Model):
    __tablename__ = 'uploaded_files'
    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.String(64), nullable=False, unique=True)
    file_url = db.Column(db.Text, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    file_name = db.Column(db.Text)
    file_size = db.Column(db.Integer)
    mime_type = db.Column(db.String(128))
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'fileId': self.file_id,
            'fileUrl': self.file_url,
            'fileName': self.file_name,
            'fileSize': self.file_size,
            'mimeType': self.mime_type,
            'createdAt': _iso(self.created_at),
        }
