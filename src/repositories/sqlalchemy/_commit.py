from sqlalchemy.exc import IntegrityError as SqlIntegrityError
from sqlalchemy.orm import Session
from src.services.exceptions import DuplicateRecordError


def save(db: Session, model, add: bool = False):
    """
    모델을 커밋하고 최신 상태로 갱신해 반환합니다.
    유니크 제약 위반은 세션을 롤백한 뒤 DuplicateRecordError로 변환합니다.
    """
    if add:
        db.add(model)
    try:
        db.commit()
    except SqlIntegrityError as e:
        db.rollback()
        raise DuplicateRecordError(str(e.orig)) from e
    db.refresh(model)
    return model
