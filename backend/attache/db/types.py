"""
AttachmentType — keep an attachment's persisted state in a model column.

The column holds the persisted map (filename plus annotations) as JSON and
hands back a restored FileState on load.

Usage::

    class Product(Base):
        __tablename__ = "products"

        id = Column(Integer, primary_key=True)
        photo = Column(AttachmentType(PhotoUploader()), nullable=True)

    product.photo = await PhotoUploader().store(upload, scope=product)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator

from attache.core.constants import SaveFormat
from attache.pipeline.serialization import AssignKeys
from attache.pipeline.state import FileState

if TYPE_CHECKING:
    from attache.uploader import Uploader


class AttachmentType(TypeDecorator):
    """JSON column storing ``uploader.save(state, format="map")``."""

    impl = JSON
    cache_ok = True

    def __init__(self, uploader: Uploader, assigns: AssignKeys = "all", *args: Any, **kwargs: Any) -> None:
        self.uploader = uploader
        self.assigns = assigns if isinstance(assigns, str) else tuple(assigns)
        super().__init__(*args, **kwargs)

    def process_bind_param(self, value: Any, dialect: Any) -> dict[str, Any] | None:
        if value is None:
            return None
        if isinstance(value, FileState):
            return self.uploader.save(value, format=SaveFormat.MAP, assigns=self.assigns)
        if isinstance(value, str):
            return {"filename": value}
        return dict(value)

    def process_result_value(self, value: Any, dialect: Any) -> FileState | None:
        if value is None:
            return None
        return self.uploader.restore(value)
