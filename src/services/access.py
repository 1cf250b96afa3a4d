# src/services/access.py
from dataclasses import dataclass

from src.database.models import UserRole
from src.services.exceptions import UnauthorizedAccessError


@dataclass(frozen=True)
class Actor:
    """요청을 보낸 사용자. 인증 자체는 이 계층 밖에서 끝났다고 가정합니다."""
    user_id: int
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def ensure_owner_or_admin(owner_id: int, actor: Actor, resource: str = "resource") -> None:
    """
    Raises:
        UnauthorizedAccessError: actor가 소유자도 관리자도 아닐 때.
    """
    if actor.is_admin or owner_id == actor.user_id:
        return
    raise UnauthorizedAccessError(f"You do not have permission to access this {resource}.")
