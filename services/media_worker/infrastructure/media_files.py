from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, String, Uuid, select, update
from sqlalchemy.exc import SQLAlchemyError

from services.media_worker.application.interfaces import MediaRepository
from services.media_worker.domain.errors import PersistenceError
from services.media_worker.domain.media import MediaFile
from services.media_worker.infrastructure.db import Base


class MediaFileRecord(Base):
    __tablename__ = "media_files"

    id = Column(Uuid(as_uuid=False), primary_key=True)
    name = Column(String, nullable=False)
    original_name = Column(String, nullable=True)
    backblaze_url = Column(String, nullable=True)
    cdn_url = Column(String, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    uploaded_by = Column(Uuid(as_uuid=False), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)


def select_media_file(media_id: str):
    return select(MediaFileRecord).where(MediaFileRecord.id == media_id)


def update_thumbnail_statement(media_id: str, thumbnail_url: str):
    return (
        update(MediaFileRecord)
        .where(MediaFileRecord.id == media_id)
        .values(
            thumbnail_url=thumbnail_url,
            updated_at=datetime.now(timezone.utc),
        )
    )


class PostgresMediaFileRepository(MediaRepository):
    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def get(self, media_id: str) -> MediaFile | None:
        try:
            with self._session_factory() as db:
                record = db.execute(select_media_file(media_id)).scalar_one_or_none()
                if record is None:
                    return None
                return _to_domain(record)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to load media file {media_id}: {exc}"
            ) from exc

    def update_thumbnail(self, media_id: str, thumbnail_url: str) -> None:
        try:
            with self._session_factory() as db:
                result = db.execute(update_thumbnail_statement(media_id, thumbnail_url))
                db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to update thumbnail URL: {exc}"
            ) from exc
        if result.rowcount == 0:
            raise PersistenceError(
                f"Failed to update thumbnail URL: media file {media_id} not found"
            )


def _to_domain(record: MediaFileRecord) -> MediaFile:
    return MediaFile(
        id=record.id,
        name=record.name,
        original_name=record.original_name,
        backblaze_url=record.backblaze_url,
        cdn_url=record.cdn_url,
        duration_seconds=record.duration_seconds,
        thumbnail_url=record.thumbnail_url,
        uploaded_by=record.uploaded_by,
        updated_at=record.updated_at,
    )
