# vidbrief/services/video_store.py

import logging
import uuid
from datetime import timedelta

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.orm import Session, sessionmaker

from vidbrief.core.errors import ConflictError, NotFoundError
from vidbrief.models.video import STATUS_RANK, Video, VideoStatus, utcnow

logger = logging.getLogger(__name__)

PROCESSING_RANK = STATUS_RANK[VideoStatus.PROCESSING_AI]


def _insert_for(session: Session):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Upsert is not supported for dialect '{dialect}'")
    return insert


class VideoStore:
    """
    Durable storage for video records, keyed by Mux asset id.

    Every mutation is a single statement whose WHERE clause (or ON CONFLICT
    merge) compares ``status_rank``, so concurrent writers can never move a
    record backwards along UPLOADED -> PROCESSING_AI -> COMPLETED.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # --- upserts -----------------------------------------------------------

    def upsert_discovered(self, asset_id: str, upload_session_id: str | None = None,
                          playback_id: str | None = None) -> Video:
        """
        Create the record as UPLOADED, or fill in fields that are still missing.
        Used by both discovery paths (notifications and polling).
        """
        table = Video.__table__
        with self.session_factory() as session:
            insert = _insert_for(session)
            now = utcnow()
            stmt = insert(table).values(
                id=uuid.uuid4(),
                asset_id=asset_id,
                upload_session_id=upload_session_id,
                playback_id=playback_id,
                status=VideoStatus.UPLOADED,
                status_rank=STATUS_RANK[VideoStatus.UPLOADED],
                enrichment_attempts=0,
                created_at=now,
                updated_at=now,
            )
            excluded = stmt.excluded
            advance = excluded.status_rank > table.c.status_rank
            changed = or_(
                advance,
                and_(table.c.upload_session_id.is_(None), excluded.upload_session_id.is_not(None)),
                and_(table.c.playback_id.is_(None), excluded.playback_id.is_not(None)),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.asset_id],
                set_={
                    "upload_session_id": func.coalesce(table.c.upload_session_id, excluded.upload_session_id),
                    "playback_id": func.coalesce(table.c.playback_id, excluded.playback_id),
                    "status": case((advance, excluded.status), else_=table.c.status),
                    "status_rank": case((advance, excluded.status_rank), else_=table.c.status_rank),
                    "updated_at": case((changed, excluded.updated_at), else_=table.c.updated_at),
                },
            )
            session.execute(stmt)
            session.commit()
            return self._load(session, asset_id)

    def mark_failed(self, asset_id: str, message: str | None = None) -> Video:
        """FAILED is terminal and overrides whatever stage the record reached."""
        table = Video.__table__
        failed_rank = STATUS_RANK[VideoStatus.FAILED]
        with self.session_factory() as session:
            insert = _insert_for(session)
            now = utcnow()
            stmt = insert(table).values(
                id=uuid.uuid4(),
                asset_id=asset_id,
                status=VideoStatus.FAILED,
                status_rank=failed_rank,
                enrichment_attempts=0,
                last_error=message,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.asset_id],
                set_={
                    "status": VideoStatus.FAILED,
                    "status_rank": failed_rank,
                    "enrichment_started_at": None,
                    "last_error": func.coalesce(stmt.excluded.last_error, table.c.last_error),
                    "updated_at": now,
                },
            )
            session.execute(stmt)
            session.commit()
            return self._load(session, asset_id)

    # --- enrichment lease ----------------------------------------------------

    def claim_enrichment(self, asset_id: str, track_id: str, max_attempts: int,
                         lease_seconds: int) -> bool:
        """
        Move the record to PROCESSING_AI and take the enrichment lease.

        Succeeds when the record is still UPLOADED, or when it sits at
        PROCESSING_AI with no live lease and attempts left. Exactly one of
        several concurrent callers gets True.
        """
        now = utcnow()
        stale_before = now - timedelta(seconds=lease_seconds)
        with self.session_factory() as session:
            result = session.execute(
                update(Video)
                .where(
                    Video.asset_id == asset_id,
                    or_(
                        Video.status_rank < PROCESSING_RANK,
                        and_(
                            Video.status_rank == PROCESSING_RANK,
                            Video.enrichment_attempts < max_attempts,
                            or_(Video.enrichment_started_at.is_(None),
                                Video.enrichment_started_at < stale_before),
                        ),
                    ),
                )
                .values(
                    status=VideoStatus.PROCESSING_AI,
                    status_rank=PROCESSING_RANK,
                    track_id=track_id,
                    enrichment_attempts=Video.enrichment_attempts + 1,
                    enrichment_started_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount == 1

    def claim_manual_retry(self, video_id: uuid.UUID, lease_seconds: int) -> Video:
        """Re-take the lease for a record stuck at PROCESSING_AI, resetting its attempt budget."""
        now = utcnow()
        stale_before = now - timedelta(seconds=lease_seconds)
        with self.session_factory() as session:
            video = session.get(Video, video_id)
            if video is None:
                raise NotFoundError(f"Video {video_id} not found")
            result = session.execute(
                update(Video)
                .where(
                    Video.id == video_id,
                    Video.status_rank == PROCESSING_RANK,
                    Video.track_id.is_not(None),
                    or_(Video.enrichment_started_at.is_(None),
                        Video.enrichment_started_at < stale_before),
                )
                .values(enrichment_attempts=1, enrichment_started_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if result.rowcount != 1:
                raise ConflictError(
                    f"Video {video_id} is not waiting for an enrichment retry (status {video.status.value})"
                )
            session.refresh(video)
            session.expunge(video)
            return video

    def complete_enrichment(self, asset_id: str, playback_id: str | None, transcript: str,
                            summary: str, description: str) -> bool:
        """Single write of all AI fields together with COMPLETED."""
        now = utcnow()
        with self.session_factory() as session:
            result = session.execute(
                update(Video)
                .where(Video.asset_id == asset_id, Video.status_rank == PROCESSING_RANK)
                .values(
                    playback_id=func.coalesce(Video.playback_id, playback_id),
                    transcript=transcript,
                    summary=summary,
                    description=description,
                    status=VideoStatus.COMPLETED,
                    status_rank=STATUS_RANK[VideoStatus.COMPLETED],
                    enrichment_started_at=None,
                    last_error=None,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount == 1

    def release_enrichment(self, asset_id: str, error: str) -> Video | None:
        """Drop the lease after a recoverable failure; status stays PROCESSING_AI."""
        with self.session_factory() as session:
            session.execute(
                update(Video)
                .where(Video.asset_id == asset_id, Video.status_rank == PROCESSING_RANK)
                .values(enrichment_started_at=None, last_error=error, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return self._load(session, asset_id, required=False)

    # --- queries -------------------------------------------------------------

    def get(self, video_id: uuid.UUID) -> Video:
        with self.session_factory() as session:
            video = session.get(Video, video_id)
            if video is None:
                raise NotFoundError(f"Video {video_id} not found")
            session.expunge(video)
            return video

    def get_by_asset(self, asset_id: str) -> Video | None:
        with self.session_factory() as session:
            return self._load(session, asset_id, required=False)

    def list_recent(self) -> list[Video]:
        with self.session_factory() as session:
            videos = session.scalars(select(Video).order_by(Video.created_at.desc())).all()
            for video in videos:
                session.expunge(video)
            return list(videos)

    def delete(self, video_id: uuid.UUID) -> None:
        with self.session_factory() as session:
            result = session.execute(delete(Video).where(Video.id == video_id))
            session.commit()
            if result.rowcount == 0:
                raise NotFoundError(f"Video {video_id} not found")

    def _load(self, session: Session, asset_id: str, required: bool = True) -> Video | None:
        video = session.scalars(select(Video).where(Video.asset_id == asset_id)).first()
        if video is None:
            if required:
                raise NotFoundError(f"No video for asset {asset_id}")
            return None
        session.expunge(video)
        return video
