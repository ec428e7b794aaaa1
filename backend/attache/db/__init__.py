"""SQLAlchemy integration."""

from attache.db.types import AttachmentType

__all__ = ["AttachmentType"]
