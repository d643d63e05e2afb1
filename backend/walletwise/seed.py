import os
from sqlalchemy import select
from walletwise.db.session import SessionLocal
from walletwise.models.user import User
from walletwise.core.security import hash_password

def main():
    email = os.environ.get("SEED_ADMIN_EMAIL", "admin@walletwise.local").strip().lower()
    password = os.environ.get("SEED_ADMIN_PASS", "admin123")

    db = SessionLocal()
    try:
        existing = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if existing:
            return
        db.add(User(email=email, full_name="Administrator", password_hash=hash_password(password), role="admin"))
        db.commit()
    finally:
        db.close()

if __name__ == "__main__":
    main()
