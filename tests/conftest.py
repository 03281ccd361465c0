import os

# Must be set before anything imports the engine.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.api.routes.routes import get_notifier, get_payment_gateway  # noqa: E402
from src.infrastructure.db.models import Base, Bus, PaymentRecord, Seat, User  # noqa: E402
from src.infrastructure.db.session import SessionLocal, engine  # noqa: E402
from src.infrastructure.notifications.email_notifier import LoggingEmailNotifier  # noqa: E402
from src.main import app  # noqa: E402

VALID_SIGNATURE = "valid-signature"


class FakeRazorpayGateway:
    """Stands in for RazorpayGateway; accepts only VALID_SIGNATURE."""

    key_id = "rzp_test_key"
    currency = "INR"
    valid_signature = VALID_SIGNATURE

    def __init__(self):
        self.orders: list[dict] = []
        self.verified: list[tuple[str, str]] = []

    def create_order(self, amount_paise: int, receipt: str) -> dict:
        order = {
            "id": f"order_test{len(self.orders) + 1}",
            "amount": amount_paise,
            "currency": self.currency,
            "receipt": receipt,
        }
        self.orders.append(order)
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        self.verified.append((order_id, payment_id))
        return signature == VALID_SIGNATURE


class FailingNotifier:
    def __init__(self):
        self.attempts = 0

    def send(self, to_address: str, subject: str, body: str) -> None:
        self.attempts += 1
        raise RuntimeError("SMTP unavailable")


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def foreign_keys_on():
    # SQLite leaves foreign keys unenforced unless asked per connection.
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
    yield
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return LoggingEmailNotifier()


@pytest.fixture
def gateway():
    return FakeRazorpayGateway()


@pytest.fixture
def failing_notifier():
    return FailingNotifier()


@pytest.fixture
def client(notifier, gateway):
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(name: str = "Test Rider", phone_number: str | None = "9999999999") -> User:
        counter["n"] += 1
        user = User(
            name=name,
            email=f"rider{counter['n']}@example.com",
            phone_number=phone_number,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_bus(db_session):
    def _make_bus(
        prices=("100", "100", "100"),
        bus_name: str = "Kaveri Express",
        booked: tuple[int, ...] = (),
    ) -> Bus:
        bus = Bus(
            bus_name=bus_name,
            bus_type="AC Seater",
            source="Bengaluru",
            destination="Chennai",
            departure_time="21:30",
            arrival_time="05:45",
            price=Decimal("100"),
            total_seats=len(prices),
            status="active",
        )
        bus.seats = [
            Seat(
                seat_number=f"S{index}",
                price=Decimal(price),
                booked=index in booked,
            )
            for index, price in enumerate(prices, start=1)
        ]
        db_session.add(bus)
        db_session.commit()
        return bus

    return _make_bus


@pytest.fixture
def make_payment(db_session):
    def _make_payment(**fields) -> PaymentRecord:
        record = PaymentRecord(**fields)
        db_session.add(record)
        db_session.commit()
        return record

    return _make_payment
