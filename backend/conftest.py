"""
Pytest configuration file for backend testing.
"""
import os
import sys
from pathlib import Path

# Add the backend directory to Python path so imports work correctly
backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Point the application at a throwaway database before settings are cached
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_restaurant_pos.db")
os.environ.setdefault("ENVIRONMENT", "test")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from core.auth import create_access_token, get_password_hash, to_current_user  # noqa: E402
from core.database import Base, SessionLocal, engine, get_db  # noqa: E402
from modules.auth.enums.role_enums import RoleName  # noqa: E402
from modules.auth.models.user_models import Role, User  # noqa: E402
from modules.menu.enums.menu_enums import Station  # noqa: E402
from modules.menu.models.menu_models import MenuItem  # noqa: E402
from modules.orders.models import order_models  # noqa: E402,F401
from modules.orders.services.order_numbering_service import OrderNumberingService  # noqa: E402
from modules.orders.services.order_service import OrderService  # noqa: E402
from modules.orders.websocket.order_event_broadcaster import OrderEventBroadcaster  # noqa: E402

TEST_PASSWORD = "password123"


class RecordingBroadcaster(OrderEventBroadcaster):
    """Broadcaster that remembers every event it was asked to send."""

    def __init__(self, send_timeout: float = 0.5):
        super().__init__(send_timeout=send_timeout)
        self.events = []

    async def broadcast(self, event_type, payload):
        data = (
            payload.model_dump(mode="json", by_alias=True)
            if hasattr(payload, "model_dump") else payload
        )
        self.events.append((getattr(event_type, "value", event_type), data))
        return await super().broadcast(event_type, payload)

    def types(self):
        return [event_type for event_type, _ in self.events]


@pytest.fixture(scope="session")
def password_hash():
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def roles(db_session):
    role_rows = {name: Role(name=name.value) for name in RoleName}
    db_session.add_all(role_rows.values())
    db_session.commit()
    return role_rows


@pytest.fixture
def make_user(db_session, roles, password_hash):
    def _make_user(username: str, role: RoleName, is_active: bool = True) -> User:
        user = User(
            username=username,
            password_hash=password_hash,
            role_id=roles[role].id,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture
def server_user(make_user):
    return make_user("server1", RoleName.SERVER)


@pytest.fixture
def other_server_user(make_user):
    return make_user("server2", RoleName.SERVER)


@pytest.fixture
def cashier_user(make_user):
    return make_user("cashier1", RoleName.CASHIER)


@pytest.fixture
def owner_user(make_user):
    return make_user("admin", RoleName.OWNER)


@pytest.fixture
def grill_user(make_user):
    return make_user("grill1", RoleName.GRILL_COOK)


@pytest.fixture
def kitchen_user(make_user):
    return make_user("kitchen1", RoleName.KITCHEN_STAFF)


@pytest.fixture
def server(server_user):
    return to_current_user(server_user)


@pytest.fixture
def other_server(other_server_user):
    return to_current_user(other_server_user)


@pytest.fixture
def cashier(cashier_user):
    return to_current_user(cashier_user)


@pytest.fixture
def owner(owner_user):
    return to_current_user(owner_user)


@pytest.fixture
def grill_cook(grill_user):
    return to_current_user(grill_user)


@pytest.fixture
def kitchen_staff(kitchen_user):
    return to_current_user(kitchen_user)


@pytest.fixture
def menu_items(db_session):
    """Starter menu: ids 1-4, one item per station plus a retired grill item."""
    items = [
        MenuItem(name="Classic Burger", price=Decimal("850"), category="Mains",
                 station=Station.GRILL.value, active=True),
        MenuItem(name="Caesar Salad", price=Decimal("550"), category="Starters",
                 station=Station.KITCHEN.value, active=True),
        MenuItem(name="Lemonade", price=Decimal("300"), category="Drinks",
                 station=Station.BEVERAGE.value, active=True),
        MenuItem(name="Old Special", price=Decimal("1200"), category="Mains",
                 station=Station.GRILL.value, active=False),
    ]
    db_session.add_all(items)
    db_session.commit()
    return {item.name: item for item in items}


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def numbering(db_session):
    return OrderNumberingService(SessionLocal)


@pytest.fixture
def order_service(db_session, broadcaster, numbering):
    return OrderService(db_session, broadcaster=broadcaster, numbering=numbering)


@pytest.fixture(scope="function")
def client(db_session, broadcaster, numbering):
    """Create a test client with database dependency override."""
    from app.main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        app.state.order_broadcaster = broadcaster
        app.state.order_numbering = numbering
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User):
        return {"Authorization": f"Bearer {create_access_token(user)}"}
    return _auth_headers
