"""
logging.py

애플리케이션 로깅 초기화.

- 루트 로거에 stdout 핸들러 하나만 붙인다
- 각 모듈은 logging.getLogger(__name__) 으로 로거를 얻어 사용
- 토큰 / 비밀번호 / 해시 값은 절대 로그에 남기지 않는다

"""

import logging
import sys

from app.core.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> None:
    global _configured
    # uvicorn --reload 등으로 여러 번 호출돼도 핸들러가 중복되지 않도록
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())
    _configured = True
