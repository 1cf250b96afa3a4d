import logging

from src.config import AppConfig
from src.logging_config import configure_logging
from .database import engine, SessionLocal, Base
from .models import *

logger = logging.getLogger(__name__)


def initialize_db(admin_email: str = "admin@localhost"):
    """
    DB와 테이블을 생성하고, 기본 데이터를 삽입합니다.
    SQLAlchemy 모델을 사용하여 모든 작업을 수행합니다.
    """
    logger.info("Initializing database")

    # 모든 테이블을 생성합니다. (이미 존재하면 생성하지 않음)
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created")

    db = SessionLocal()
    try:
        # 기본 데이터가 이미 있는지 확인
        if db.query(User).first():
            logger.info("Seed data already present; skipping")
            return

        # Admin user
        db.add(User(email=admin_email, first_name="Admin", role=UserRole.ADMIN))

        # Base Image
        db.add(Image(
            provider_image_id="afecbb85-e2fc-46f0-9684-b46b1faf00bb",
            name="ubuntu-22.04",
            is_active=True,
        ))

        db.commit()
        logger.info("Seed data inserted")

    except Exception:
        logger.exception("Database initialization failed")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == '__main__':
    config = AppConfig.from_env()
    configure_logging(config.log_level, config.log_format)
    initialize_db()
