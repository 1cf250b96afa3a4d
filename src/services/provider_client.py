# src/services/provider_client.py
"""
컴퓨트 프로바이더(Contabo 호환 REST API) 클라이언트
=================================================

OAuth2 password grant로 받은 bearer 토큰을 캐시해 재사용하고,
모든 요청에 x-request-id(UUID4)와 명시적 timeout을 붙입니다.
401 응답을 받으면 토큰을 무효화한 뒤 한 번만 재시도합니다.
호출자는 HTTP 상태 코드를 직접 해석하지 않고 UpstreamProviderError만 다룹니다.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.exceptions import RequestException, Timeout

from src.config import ProviderConfig
from src.services.exceptions import ConfigurationError, ProviderTimeoutError, UpstreamProviderError

logger = logging.getLogger(__name__)

_BODY_METHODS = {"POST", "PUT", "PATCH"}


# ===================================================================
#  응답 데이터 클래스
# ===================================================================

@dataclass
class ActionResult:
    """프로바이더가 비동기로 접수한 작업. 완료 여부는 이후 동기화로만 확인합니다."""
    request_id: Optional[str]
    status: Optional[str]


@dataclass
class ProviderInstance:
    instance_id: int
    name: Optional[str]
    display_name: Optional[str]
    status: Optional[str]
    ip_address: Optional[str]
    region: Optional[str]
    image_id: Optional[str] = None


@dataclass
class ProviderSnapshot:
    snapshot_id: str
    name: str
    description: Optional[str]
    size_mb: Optional[int]
    created_at: Optional[str] = None


@dataclass
class ProviderImage:
    image_id: str
    name: str
    description: Optional[str] = None
    os_type: Optional[str] = None


# ===================================================================
#  토큰 캐시
# ===================================================================

class TokenCache:
    """
    bearer 토큰과 만료 시각을 보관합니다.
    clock을 주입할 수 있어 테스트에서 시간 경과를 흉내 낼 수 있습니다.
    """

    def __init__(self, safety_margin: int = 60, clock: Callable[[], float] = time.monotonic):
        self.safety_margin = safety_margin
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def get_or_fetch(self, fetch: Callable[[], tuple]) -> str:
        """
        유효한 토큰이 있으면 재사용하고, 없으면 fetch()로 새로 발급받습니다.
        발급은 잠금 안에서 수행되므로 동시에 여러 번 발급되지 않습니다.

        Args:
            fetch: (access_token, expires_in_seconds)를 반환하는 함수.
        """
        with self._lock:
            if self._token and self._clock() < self._expires_at - self.safety_margin:
                return self._token
            token, expires_in = fetch()
            self._token = token
            self._expires_at = self._clock() + float(expires_in)
            return token

    def invalidate(self, token: str) -> None:
        """캐시된 토큰이 token과 같을 때만 비웁니다. 다른 스레드가 이미 갱신한 토큰은 유지됩니다."""
        with self._lock:
            if self._token == token:
                self._token = None
                self._expires_at = 0.0


# ===================================================================
#  클라이언트
# ===================================================================

class ProviderClient:
    def __init__(self, config: ProviderConfig, token_cache: Optional[TokenCache] = None,
                 session: Optional[requests.Session] = None):
        self.config = config
        self.base_url = config.api_base.rstrip("/")
        self.timeout = config.timeout
        self.token_cache = token_cache or TokenCache(safety_margin=config.token_safety_margin)
        self._session = session or requests.Session()

    # ------------------------------------------------------------------
    # 인증 / 공통 요청
    # ------------------------------------------------------------------

    def _fetch_token(self):
        if not self.config.is_configured:
            raise ConfigurationError("Provider API credentials not configured")

        logger.debug("Requesting new provider access token")
        try:
            response = self._session.post(
                self.config.auth_url,
                data={
                    "grant_type": "password",
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "username": self.config.api_user,
                    "password": self.config.api_password,
                },
                timeout=self.timeout,
            )
        except Timeout as e:
            raise ProviderTimeoutError("Provider authentication timed out") from e
        except RequestException as e:
            raise UpstreamProviderError(None, f"Provider authentication failed: {e}") from e

        if not response.ok:
            raise UpstreamProviderError(response.status_code, self._error_message(response))

        payload = response.json()
        return payload["access_token"], payload.get("expires_in", 300)

    def get_token(self) -> str:
        return self.token_cache.get_or_fetch(self._fetch_token)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or "Unknown error"
        if isinstance(body, dict):
            return body.get("message") or body.get("error_description") or body.get("error") or response.text
        return response.text

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None,
                 params: Optional[Dict[str, Any]] = None) -> Any:
        """
        인증된 요청을 보내고 JSON 응답 본문을 반환합니다.

        Raises:
            ProviderTimeoutError: 요청이 시간 초과되었을 때. 작업 수행 여부는 알 수 없습니다.
            UpstreamProviderError: 2xx 이외의 응답 또는 두 번째 401을 받았을 때.
        """
        method = method.upper()
        url = f"{self.base_url}{path}"

        for attempt in range(2):
            token = self.get_token()
            request_id = str(uuid.uuid4())
            headers = {
                "Authorization": f"Bearer {token}",
                "x-request-id": request_id,
            }
            if method in _BODY_METHODS:
                headers["Content-Type"] = "application/json"

            try:
                response = self._session.request(
                    method,
                    url,
                    json=json if method in _BODY_METHODS else None,
                    params=params,
                    headers=headers,
                    timeout=self.timeout,
                )
            except Timeout as e:
                logger.warning("Provider request timed out: %s %s", method, path, extra={"request_id": request_id})
                raise ProviderTimeoutError(f"{method} {path} timed out; outcome unknown") from e
            except RequestException as e:
                raise UpstreamProviderError(None, f"{method} {path} failed: {e}") from e

            if response.status_code == 401 and attempt == 0:
                logger.info("Provider rejected access token; refreshing and retrying once")
                self.token_cache.invalidate(token)
                continue

            if not response.ok:
                message = self._error_message(response)
                logger.warning("Provider API error %s on %s %s: %s", response.status_code, method, path, message,
                               extra={"request_id": request_id})
                raise UpstreamProviderError(response.status_code, message)

            if response.status_code == 204 or not response.content:
                return None
            return response.json()

        # for 루프는 항상 return/raise로 끝납니다.
        raise UpstreamProviderError(401, "Unauthorized")

    @staticmethod
    def _data(payload: Any) -> Any:
        """응답 봉투({"data": ...})를 벗겨냅니다."""
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    @classmethod
    def _first(cls, payload: Any) -> Dict[str, Any]:
        data = cls._data(payload)
        if isinstance(data, list):
            return data[0] if data else {}
        return data or {}

    # ------------------------------------------------------------------
    # 변환 헬퍼
    # ------------------------------------------------------------------

    @staticmethod
    def _to_instance(raw: Dict[str, Any]) -> ProviderInstance:
        ip = (((raw.get("ipConfig") or {}).get("v4") or {}).get("ip"))
        return ProviderInstance(
            instance_id=int(raw["instanceId"]),
            name=raw.get("name"),
            display_name=raw.get("displayName"),
            status=raw.get("status"),
            ip_address=ip,
            region=raw.get("region"),
            image_id=raw.get("imageId"),
        )

    @staticmethod
    def _to_snapshot(raw: Dict[str, Any]) -> ProviderSnapshot:
        size = raw.get("size")
        return ProviderSnapshot(
            snapshot_id=str(raw["snapshotId"]),
            name=raw.get("name") or "",
            description=raw.get("description"),
            size_mb=int(size) if size is not None else None,
            created_at=raw.get("createdDate"),
        )

    @classmethod
    def _to_action(cls, payload: Any) -> ActionResult:
        data = cls._first(payload)
        return ActionResult(request_id=data.get("requestId"), status=data.get("status"))

    # ------------------------------------------------------------------
    # 인스턴스
    # ------------------------------------------------------------------

    def list_instances(self) -> List[ProviderInstance]:
        payload = self._request("GET", "/compute/instances")
        return [self._to_instance(raw) for raw in self._data(payload) or []]

    def get_instance(self, instance_id: int) -> ProviderInstance:
        payload = self._request("GET", f"/compute/instances/{instance_id}")
        return self._to_instance(self._first(payload))

    def _instance_action(self, instance_id: int, action: str) -> ActionResult:
        payload = self._request("POST", f"/compute/instances/{instance_id}/actions/{action}", json={})
        return self._to_action(payload)

    def start_instance(self, instance_id: int) -> ActionResult:
        return self._instance_action(instance_id, "start")

    def stop_instance(self, instance_id: int) -> ActionResult:
        return self._instance_action(instance_id, "stop")

    def restart_instance(self, instance_id: int) -> ActionResult:
        return self._instance_action(instance_id, "restart")

    def shutdown_instance(self, instance_id: int) -> ActionResult:
        return self._instance_action(instance_id, "shutdown")

    def rescue_instance(self, instance_id: int) -> ActionResult:
        return self._instance_action(instance_id, "rescue")

    def reset_password(self, instance_id: int) -> str:
        """새 root 비밀번호를 발급받아 반환합니다. 이전 비밀번호는 더 이상 사용할 수 없습니다."""
        payload = self._request("POST", f"/compute/instances/{instance_id}/actions/resetPassword", json={})
        password = self._first(payload).get("rootPassword")
        if not password:
            raise UpstreamProviderError(None, "Provider did not return a new root password")
        return password

    # ------------------------------------------------------------------
    # 스냅샷
    # ------------------------------------------------------------------

    def list_snapshots(self, instance_id: int) -> List[ProviderSnapshot]:
        payload = self._request("GET", f"/compute/instances/{instance_id}/snapshots")
        return [self._to_snapshot(raw) for raw in self._data(payload) or []]

    def create_snapshot(self, instance_id: int, name: str, description: Optional[str] = None) -> ProviderSnapshot:
        payload = self._request(
            "POST",
            f"/compute/instances/{instance_id}/snapshots",
            json={"name": name, "description": description or name},
        )
        return self._to_snapshot(self._first(payload))

    def restore_snapshot(self, instance_id: int, snapshot_id: str) -> ActionResult:
        payload = self._request("POST", f"/compute/instances/{instance_id}/snapshots/{snapshot_id}/restore", json={})
        return self._to_action(payload)

    def delete_snapshot(self, instance_id: int, snapshot_id: str) -> None:
        self._request("DELETE", f"/compute/instances/{instance_id}/snapshots/{snapshot_id}")

    # ------------------------------------------------------------------
    # 이미지
    # ------------------------------------------------------------------

    def list_images(self) -> List[ProviderImage]:
        payload = self._request("GET", "/compute/images")
        return [
            ProviderImage(
                image_id=str(raw["imageId"]),
                name=raw.get("name") or "",
                description=raw.get("description"),
                os_type=raw.get("osType"),
            )
            for raw in self._data(payload) or []
        ]

    def get_image(self, image_id: str) -> ProviderImage:
        raw = self._first(self._request("GET", f"/compute/images/{image_id}"))
        return ProviderImage(
            image_id=str(raw.get("imageId", image_id)),
            name=raw.get("name") or "",
            description=raw.get("description"),
            os_type=raw.get("osType"),
        )
