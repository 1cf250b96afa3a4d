# src/logging_config.py
"""
구조화 로깅 설정
================

운영 환경에서는 JSON 라인 형식, 개발 환경에서는 일반 텍스트 형식으로 로그를 남깁니다.
모든 핸들러에는 비밀번호/토큰을 가리는 ScrubFilter가 설치됩니다.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import List, Tuple

_REDACTED = r"\1***REDACTED***"

_SCRUB_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^"\'\s,}{\]]+)', re.IGNORECASE), _REDACTED),
    (re.compile(r'(token["\']?\s*[:=]\s*["\']?)([^"\'\s,}{\]]+)', re.IGNORECASE), _REDACTED),
    (re.compile(r'(secret["\']?\s*[:=]\s*["\']?)([^"\'\s,}{\]]+)', re.IGNORECASE), _REDACTED),
    (re.compile(r'(Bearer\s+)(\S+)', re.IGNORECASE), _REDACTED),
]


def scrub(text: str) -> str:
    """text에 포함된 민감 정보를 가립니다."""
    for pattern, replacement in _SCRUB_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class ScrubFilter(logging.Filter):
    """로그 메시지와 인자에서 비밀번호, 토큰 값을 제거하는 필터."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(scrub(a) if isinstance(a, str) else a for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: scrub(v) if isinstance(v, str) else v for k, v in record.args.items()}
        return True


class JSONFormatter(logging.Formatter):
    """로그 레코드를 JSON 한 줄로 출력합니다."""

    EXTRA_FIELDS = ("order_id", "vps_id", "provider_instance_id", "request_id")

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in self.EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """
    애플리케이션 로깅을 설정합니다.

    Args:
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR).
        fmt: "json"이면 구조화 로그, 그 외에는 일반 텍스트.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    handler.addFilter(ScrubFilter())
    root.addHandler(handler)

    # 외부 라이브러리 로그 줄이기
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)
