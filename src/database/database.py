from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from src.config import AppConfig

# 데이터베이스 연결 문자열은 DATABASE_URL 환경 변수에서 읽습니다. (기본값: SQLite)
SQLALCHEMY_DATABASE_URL = AppConfig.from_env().database.url


def make_engine(url: str, echo: bool = False):
    """
    주어진 URL로 SQLAlchemy 엔진을 생성합니다.
    connect_args는 SQLite에서만 필요합니다. (thread-safe 설정)
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=echo, connect_args=connect_args)


# SQLAlchemy 엔진 생성
engine = make_engine(SQLALCHEMY_DATABASE_URL)

# autocommit=False, autoflush=False로 설정하여, 명시적으로 commit을 호출해야 DB에 반영됩니다.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 모든 모델 클래스가 상속받을 Base 클래스
Base = declarative_base()
