# priority_crm/database.py
from typing import Callable, Optional, Protocol

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from . import config

# 모델 클래스들이 상속받을 Base 클래스
Base = declarative_base()


class Persistence(Protocol):
    """동기식 키-값 저장소 인터페이스."""

    def load(self, key: str) -> Optional[bytes]: ...

    def save(self, key: str, value: bytes) -> None: ...


class SqlPersistence:
    """SQLAlchemy 세션으로 storage 테이블에 값을 읽고 씁니다."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load(self, key: str) -> Optional[bytes]:
        """키에 저장된 마지막 값을 반환합니다. 없으면 None."""
        from .models import StorageRecord

        with self._session_factory() as db:
            record = db.get(StorageRecord, key)
            return record.value if record else None

    def save(self, key: str, value: bytes) -> None:
        """키의 값을 덮어쓰고 즉시 커밋합니다."""
        from .models import StorageRecord

        with self._session_factory() as db:
            record = db.get(StorageRecord, key)
            if record is None:
                db.add(StorageRecord(key=key, value=value))
            else:
                record.value = value
            db.commit()


def build_engine(database_url: str = config.DATABASE_URL):
    """데이터베이스 엔진 생성 (SQLite는 스레드 검사 비활성화)"""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


def open_persistence(database_url: str = config.DATABASE_URL) -> SqlPersistence:
    """엔진과 테이블을 준비하고 SqlPersistence를 반환합니다."""
    # models 모듈이 Base에 테이블을 등록해야 create_all이 동작합니다.
    from . import models  # noqa: F401

    engine = build_engine(database_url)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autoflush=False, bind=engine)
    return SqlPersistence(SessionLocal)
