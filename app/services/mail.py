"""
services/mail.py

메일 발송 요청(MailDispatcher).

실제 SMTP 발송은 외부 워커의 몫이고, 여기서는 발송 작업을 큐에 넣기만 한다.
DB 트랜잭션이 commit 된 뒤에 호출되며, 실패는 로그만 남기고 호출 측에 전파하지 않는다.
(토큰은 이미 저장돼 있으므로 사용자가 재발송을 요청하면 된다)

- RedisMailQueue       : Redis 리스트에 JSON 작업을 rpush
- OutboxMailDispatcher : 프로세스 내부 리스트에 보관 (로컬 / 테스트)

"""

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Any

import redis

logger = logging.getLogger(__name__)


@dataclass
class MailJob:
    subject: str
    to: str
    template: str
    context: dict[str, Any] = field(default_factory=dict)


class RedisMailQueue:
    def __init__(self, url: str, queue_name: str = "mail_queue") -> None:
        self._client = redis.Redis.from_url(url)
        self._queue_name = queue_name

    def send(self, subject: str, to: str, template: str, context: dict[str, Any]) -> None:
        job = MailJob(subject=subject, to=to, template=template, context=context)
        try:
            self._client.rpush(self._queue_name, json.dumps({"task": "send_mail", "payload": asdict(job)}))
        except redis.RedisError as e:
            logger.error("failed to enqueue mail %r (template=%s): %s", subject, template, e)


class OutboxMailDispatcher:
    def __init__(self) -> None:
        self.sent: list[MailJob] = []
        self._lock = threading.Lock()

    def send(self, subject: str, to: str, template: str, context: dict[str, Any]) -> None:
        with self._lock:
            self.sent.append(MailJob(subject=subject, to=to, template=template, context=dict(context)))
        logger.info("queued mail %r (template=%s) in outbox", subject, template)

    def last_to(self, to: str) -> MailJob | None:
        with self._lock:
            for job in reversed(self.sent):
                if job.to == to:
                    return job
        return None
