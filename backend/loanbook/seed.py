from sqlalchemy import select
from loanbook.core.config import settings
from loanbook.db.session import SessionLocal
from loanbook.models.user import User
from loanbook.core.security import hash_password

def main():
    username = settings.seed_admin_user
    with SessionLocal() as db:
        existing = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
        if existing:
            return
        db.add(User(username=username, password_hash=hash_password(settings.seed_admin_pass), role="admin"))
        db.commit()

if __name__ == "__main__":
    main()
