# src/services/credential_vault.py
import binascii
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from src.services.exceptions import ConfigurationError, IntegrityError

logger = logging.getLogger(__name__)

SALT_LENGTH = 64
NONCE_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000

# 개발 환경 전용 기본 키. 운영 환경에서는 절대 사용되지 않습니다.
_DEV_FALLBACK_KEY = "0123456789abcdef" * 4


class CredentialVault:
    """
    VPS root 비밀번호를 저장 시점에 암호화/복호화합니다.

    AES-256-GCM을 사용하며, 매 호출마다 새 salt와 nonce를 생성하고
    PBKDF2-HMAC-SHA256으로 프로세스 비밀 키에서 암호화 키를 유도합니다.
    암호문 blob은 salt || nonce || tag || ciphertext 를 hex로 인코딩한 문자열입니다.
    인스턴스는 변경 가능한 공유 상태를 갖지 않으므로 여러 스레드에서 함께 사용해도 됩니다.
    """

    def __init__(self, secret: Optional[str], production: bool = False, iterations: int = PBKDF2_ITERATIONS):
        """
        Args:
            secret: 64자리 hex 문자열(32바이트) 형태의 프로세스 비밀 키. (ENCRYPTION_KEY)
            production: 운영 환경 여부. True이면 기본 키로 대체하지 않습니다.
            iterations: PBKDF2 반복 횟수.

        Raises:
            ConfigurationError: 운영 환경에서 키가 없거나, 키 형식이 잘못되었을 때.
        """
        self._iterations = iterations
        self._using_fallback = False

        if not secret:
            if production:
                raise ConfigurationError("ENCRYPTION_KEY must be set in production")
            self._using_fallback = True
            secret = _DEV_FALLBACK_KEY

        if len(secret) != KEY_LENGTH * 2:
            raise ConfigurationError("ENCRYPTION_KEY must be 64 hex characters (32 bytes)")
        try:
            self._master_key = bytes.fromhex(secret)
        except ValueError as e:
            raise ConfigurationError("ENCRYPTION_KEY must be 64 hex characters (32 bytes)") from e

    def _derive_key(self, salt: bytes) -> bytes:
        if self._using_fallback:
            logger.warning("Using default encryption key - do not use in production")
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=self._iterations,
        )
        return kdf.derive(self._master_key)

    def encrypt(self, plaintext: str) -> str:
        """
        평문 비밀번호를 암호화합니다. 같은 평문이라도 호출마다 다른 결과가 나옵니다.

        Raises:
            ValueError: 평문이 비어 있을 때.
        """
        if not plaintext:
            raise ValueError("Cannot encrypt an empty password.")

        salt = os.urandom(SALT_LENGTH)
        nonce = os.urandom(NONCE_LENGTH)
        key = self._derive_key(salt)

        # AESGCM은 ciphertext 뒤에 tag를 붙여 반환합니다.
        sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        return (salt + nonce + tag + ciphertext).hex()

    def decrypt(self, blob: str) -> str:
        """
        encrypt()로 만든 blob을 복호화합니다.

        Raises:
            IntegrityError: blob 형식이 잘못되었거나 인증 태그 검증에 실패했을 때.
                인증되지 않은 평문은 절대 반환하지 않습니다.
        """
        try:
            combined = binascii.unhexlify(blob)
        except (binascii.Error, ValueError, TypeError) as e:
            raise IntegrityError("Encrypted credential is not valid hex.") from e

        header = SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH
        if len(combined) <= header:
            raise IntegrityError("Encrypted credential is truncated.")

        salt = combined[:SALT_LENGTH]
        nonce = combined[SALT_LENGTH:SALT_LENGTH + NONCE_LENGTH]
        tag = combined[SALT_LENGTH + NONCE_LENGTH:header]
        ciphertext = combined[header:]

        key = self._derive_key(salt)
        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise IntegrityError("Encrypted credential failed authentication.") from e
        return plaintext.decode("utf-8")
