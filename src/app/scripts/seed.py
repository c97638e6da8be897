"""
Demo seed script: creates an admin, a customer and a small catalogue.

Usage:
    python -m src.app.scripts.seed  # creates tables if needed, inserts demo data

Demo credentials:
    Admin     →  admin@larek.dev     /  Demo1234!
    Customer  →  customer@larek.dev  /  Demo1234!

Idempotency:
    If the admin demo account already exists the script prints a warning
    and exits without inserting duplicate rows. Safe to run multiple times.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from src.app import models  # noqa: F401  registers all models with Base.metadata
from src.app.auth import hash_password
from src.app.database import Base, SessionLocal, engine
from src.app.models import Product, Role, User

# ── Demo credentials ──────────────────────────────────────────────────────────

ADMIN_EMAIL = "admin@larek.dev"
CUSTOMER_EMAIL = "customer@larek.dev"
DEMO_PASSWORD = "Demo1234!"

# ── Seed data ─────────────────────────────────────────────────────────────────

# (title, category, price, image file name); price None = not for sale
_PRODUCTS = [
    ("+1 час в сутках", "софт-скил", 750, "Subtract.svg"),
    ("HEX-леденец", "другое", 1450, "Shell.svg"),
    ("Мамка-таймер", "софт-скил", None, "Asterisk_2.svg"),
    ("Фреймворк куки судьбы", "дополнительное", 2500, "Soft_Flower.svg"),
    ("Кнопка «Замьютить кота»", "кнопка", 2000, "mute-cat.svg"),
]


def run(db: Session) -> bool:
    """
    Seed demo data into the given session.

    Returns True if data was inserted, False if already present (idempotent).
    The caller is responsible for the session lifecycle (commit is done here).
    """
    if db.query(User).filter(User.email == ADMIN_EMAIL).first():
        print(f"[seed] Demo data already present ('{ADMIN_EMAIL}' exists). Skipping.")
        return False

    now = datetime.now(timezone.utc).replace(tzinfo=None)

    db.add(
        User(
            email=ADMIN_EMAIL,
            name="Администратор",
            password_hash=hash_password(DEMO_PASSWORD),
            role=Role.admin,
            created_at=now,
        )
    )
    db.add(
        User(
            email=CUSTOMER_EMAIL,
            name="Покупатель",
            password_hash=hash_password(DEMO_PASSWORD),
            role=Role.customer,
            created_at=now,
        )
    )
    for title, category, price, file_name in _PRODUCTS:
        db.add(
            Product(
                title=title,
                category=category,
                price=price,
                image_file_name=f"/{file_name}",
                image_original_name=file_name,
                created_at=now,
            )
        )

    db.commit()

    print("[seed] Demo data created successfully.")
    print(f"  Admin     →  {ADMIN_EMAIL}  /  {DEMO_PASSWORD}")
    print(f"  Customer  →  {CUSTOMER_EMAIL}  /  {DEMO_PASSWORD}")
    print(f"  Products  →  {len(_PRODUCTS)} items")
    print("  Start the app:  uvicorn src.app.main:app --reload --port 3000")
    return True


if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        run(db)
    finally:
        db.close()
