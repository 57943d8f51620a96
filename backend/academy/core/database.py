"""
Engine, sessions and declarative base.

Tests run against a single shared in-memory SQLite connection; every other
environment talks to ``settings.DATABASE_URL``.
"""

from typing import Generator, List, Type
from sqlalchemy import create_engine, MetaData, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
import logging

from .config import settings


logger = logging.getLogger(__name__)


metadata = MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
})


def _build_engine() -> Engine:
    if settings.TESTING:
        return create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        echo=settings.DEBUG,
    )


engine = _build_engine()

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base(metadata=metadata)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session, closed once the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _ensure_owner(db: Session) -> None:
    from academy.models.user import User, UserRole
    from academy.core.security import get_password_hash

    exists = db.query(User.id).filter(User.email == settings.FIRST_ADMIN_EMAIL).first()
    if exists:
        return

    db.add(User(
        email=settings.FIRST_ADMIN_EMAIL,
        full_name=settings.FIRST_ADMIN_NAME,
        hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
        role=UserRole.OWNER.value,
        is_active=True
    ))
    logger.info(f"Owner account seeded for {settings.FIRST_ADMIN_EMAIL}")


def _ensure_default_settings(db: Session) -> None:
    from academy.models.admin import SystemSettings

    present = {key for (key,) in db.query(SystemSettings.key).all()}
    missing = [row for row in SystemSettings.get_default_settings() if row["key"] not in present]
    for row in missing:
        db.add(SystemSettings(**row))
    if missing:
        logger.info(f"Seeded {len(missing)} system settings")


def init_db(db: Session) -> None:
    """
    Seed the owner account and the default system settings.

    Only missing rows are written, so this runs on every startup.
    """
    _ensure_owner(db)
    _ensure_default_settings(db)
    db.commit()


def check_database_connection() -> bool:
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database unreachable: {e}")
        return False
    return True


class DatabaseManager:
    """Schema helpers used at startup and by the test suite."""

    @staticmethod
    def create_all_tables() -> None:
        import academy.models  # noqa: F401
        Base.metadata.create_all(bind=engine)
        logger.info("Tables created")

    @staticmethod
    def drop_all_tables() -> None:
        Base.metadata.drop_all(bind=engine)
        logger.warning("Tables dropped")

    @staticmethod
    def _counted_models() -> List[Type]:
        from academy.models import User, Course, Topic, Material, Test, Enrollment, TestAttempt
        return [User, Course, Topic, Material, Test, Enrollment, TestAttempt]

    @staticmethod
    def get_table_stats() -> dict:
        """Row count per main table, keyed by table name."""
        with SessionLocal() as db:
            return {
                model.__tablename__: {"count": db.query(model).count(), "model": model.__name__}
                for model in DatabaseManager._counted_models()
            }
