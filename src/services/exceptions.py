# src/services/exceptions.py

# --- General Exceptions ---
class NotFoundError(Exception):
    """요청한 주문, 인스턴스, 스냅샷 등을 찾을 수 없을 때"""
    pass

class ConfigurationError(Exception):
    """필수 설정(암호화 키 등)이 없거나 형식이 잘못되었을 때"""
    pass

# --- State Exceptions ---
class InvalidTransitionError(Exception):
    """주문 상태 전이 테이블에 없는 전이를 요청했을 때"""
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Invalid order transition: {_value(current)} -> {_value(target)}")

class InvalidStateError(Exception):
    """주문 또는 인스턴스의 현재 상태가 작업의 전제 조건을 만족하지 않을 때"""
    pass

class ConflictError(Exception):
    """유일해야 하는 리소스가 이미 다른 주문에 바인딩되어 있을 때"""
    pass

class NotProvisionedError(Exception):
    """인스턴스에 프로바이더 인스턴스 ID가 아직 할당되지 않았을 때"""
    pass

class DuplicateRecordError(Exception):
    """DB 유니크 제약 조건 위반 시 (리포지토리 계층에서 변환)"""
    pass

# --- Auth Exceptions ---
class UnauthorizedAccessError(Exception):
    """요청자가 리소스의 소유자도 관리자도 아닐 때"""
    pass

# --- Upstream Exceptions ---
class UpstreamProviderError(Exception):
    """컴퓨트 프로바이더 또는 결제 게이트웨이가 2xx 이외의 응답을 반환했을 때"""
    def __init__(self, status_code, message):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Provider API error ({status_code}): {message}")

class ProviderTimeoutError(UpstreamProviderError):
    """프로바이더 호출이 시간 초과되었을 때. 실제 처리 여부는 알 수 없습니다."""
    def __init__(self, message="Provider request timed out; outcome unknown"):
        super().__init__(None, message)

# --- Crypto Exceptions ---
class IntegrityError(Exception):
    """암호문 인증(GCM 태그) 검증에 실패했을 때"""
    pass

# --- Notification Exceptions ---
class NotificationError(Exception):
    """알림(이메일) 발송 실패 시"""
    pass


def _value(status):
    return getattr(status, "value", status)
