"""Integration tests for the AttachmentType column on SQLite."""

from __future__ import annotations

import json

import pytest
from sqlalchemy import Column, Integer, create_engine, text
from sqlalchemy.orm import DeclarativeBase, Session

from attache import FileState, Uploader
from attache.core.config import Settings
from attache.db import AttachmentType


class PhotoUploader(Uploader):
    options = {"versions": ["original", "thumb"]}


uploader = PhotoUploader(settings=Settings(_env_file=None))


class Base(DeclarativeBase):
    pass


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    photo = Column(AttachmentType(uploader), nullable=True)


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as db_session:
        yield db_session
    engine.dispose()


class TestAttachmentType:
    """Test suite for AttachmentType."""

    def test_state_round_trip(self, session) -> None:
        state = uploader.restore({"filename": "coffee.jpg", "version_assigns": {"thumb": {"hash": "abc"}}})
        session.add(Product(id=1, photo=state))
        session.commit()
        session.expire_all()

        loaded = session.get(Product, 1).photo

        assert isinstance(loaded, FileState)
        assert loaded.filename == "coffee.jpg"
        assert loaded.versions["thumb"].assigns == {"hash": "abc"}
        assert loaded.uploader is uploader

    def test_column_holds_the_persisted_map(self, session) -> None:
        session.add(Product(id=1, photo=uploader.restore("coffee.jpg").assign("uploaded_by", 7)))
        session.commit()

        raw = session.execute(text("SELECT photo FROM products WHERE id = 1")).scalar_one()

        assert json.loads(raw) == {"filename": "coffee.jpg", "assigns": {"uploaded_by": 7}}

    def test_bare_filename_is_accepted(self, session) -> None:
        session.add(Product(id=1, photo="beans.jpg"))
        session.commit()
        session.expire_all()

        assert session.get(Product, 1).photo.filename == "beans.jpg"

    def test_null(self, session) -> None:
        session.add(Product(id=1, photo=None))
        session.commit()
        session.expire_all()

        assert session.get(Product, 1).photo is None
