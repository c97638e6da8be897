"""
ORM models:
- All tables are created from Base.metadata and a User row is insertable
- Order ↔ Product link table and order → customer relationship work

Uses an in-memory SQLite so the test is self-contained and does not depend on
the presence of data/shop.db.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.app.database import Base
import src.app.models  # registers all models with Base.metadata  # noqa: F401
from src.app.models import Order, OrderStatus, PaymentType, Product, Role, User


def _make_session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


def test_user_row_insert_and_defaults():
    Session = _make_session()
    with Session() as session:
        user = User(email="test@example.com", name="Тест", password_hash="not-a-real-hash")
        session.add(user)
        session.commit()
        session.refresh(user)

        assert user.id is not None
        assert user.role == Role.customer
        assert user.total_amount == 0
        assert user.order_count == 0
        assert user.last_order_id is None
        assert user.created_at is not None


def test_order_links_customer_and_products():
    Session = _make_session()
    with Session() as session:
        user = User(email="buyer@example.com", name="Buyer", password_hash="hash")
        product = Product(
            title="HEX-леденец", category="другое", price=1450,
            image_file_name="/Shell.svg", image_original_name="Shell.svg",
        )
        order = Order(
            order_number=1, customer=user, payment=PaymentType.online,
            address="Москва", email=user.email, phone="+70000000000",
            total_amount=1450, products=[product],
        )
        session.add(order)
        session.commit()
        session.refresh(user)

        assert order.status == OrderStatus.new
        assert order.comment == ""
        assert [o.order_number for o in user.orders] == [1]
        assert order.products[0].title == "HEX-леденец"
