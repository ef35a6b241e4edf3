# vidbrief/shared/db/database.py

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from vidbrief.core.config import settings

# 1. สร้าง Engine จาก DATABASE_URL ใน settings
# SQLite ต้องอนุญาตให้ใช้ connection ข้าม thread เพราะงาน enrichment รันใน background
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)

# 2. "โรงงาน" สำหรับสร้าง session
Session_Local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 3. คลาสพื้นฐานของ Model ทุกตัว
Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    # import models so they register on Base.metadata
    from vidbrief.models import video  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
