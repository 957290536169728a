"""

기본 권한 / admin 역할 / 초기 관리자 계정 생성 스크립트.

- 서버 최초 세팅 시 실행하는 용도 (여러 번 실행해도 안전)
- user.read / user.create / user.update / user.delete 권한과
  이 권한을 모두 가진 admin 역할을 만든다
- .env에 정의된 ADMIN_* 환경 변수를 읽어
  이메일 인증이 끝난 관리자 계정을 만들고 admin 역할을 부여한다
- 같은 이메일의 계정이 이미 있으면 역할만 부여한다

사용 방법
- 가상환경 접속
- (.venv) ~\backend~$ python -m scripts.seed_rbac

"""

import os
from dotenv import load_dotenv
load_dotenv()

from app.core.deps import get_cache
from app.db.session import SessionLocal
from app.models.user import utcnow
from app.schemas.user import UserCreate
from app.services.rbac import assign_role, seed_default_rbac
from app.services.users import create_user, find_by_email



def main():
    db = SessionLocal()
    try:
        role, affected = seed_default_rbac(db)
        cache = get_cache()

        email = os.environ["ADMIN_EMAIL"]
        password = os.environ["ADMIN_PASSWORD"]
        name = os.environ.get("ADMIN_NAME", "Administrator")

        existing = find_by_email(db, email)
        if existing:
            assign_role(db, existing.id, role.id)
            db.commit()
            # 권한이 바뀐 사용자들의 캐시된 권한 정보 제거
            cache.invalidate_many(set(affected) | {existing.id})
            print(f"✅ admin role ensured for existing user: {email}")
            return

        create_user(
            db,
            UserCreate(name=name, email=email, password=password, role_ids=[role.id]),
            email_verified_at=utcnow(),
        )
        db.commit()
        cache.invalidate_many(affected)

        print(f"🚀 admin created: {email}")

    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
