import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SEED_DEV_USER", "false")
os.environ.setdefault("COOKIE_SECURE", "false")
os.environ.setdefault("COOKIE_SAMESITE", "lax")
os.environ.setdefault("DEFAULT_CURRENCY", "INR")
os.environ.setdefault("APP_TIMEZONE", "UTC")

from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402

from ledgerly.db import Base, SessionLocal, engine  # noqa: E402
from ledgerly.main import app  # noqa: E402
from ledgerly.models import User  # noqa: E402
from ledgerly.security import hash_password  # noqa: E402
from ledgerly.store import LedgerStore  # noqa: E402

DEMO_EMAIL = "demo@ledgerly.local"
OTHER_EMAIL = "other@ledgerly.local"
PASSWORD = "changeme"

# Low iteration count keeps the suite fast; verify_password reads it from the hash.
PASSWORD_HASH = hash_password(PASSWORD, iterations=1_000)


def _reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        db.add_all([
            User(
                email=DEMO_EMAIL,
                name="Demo User",
                password_hash=PASSWORD_HASH,
                is_admin=True,
                role="CUSTOMER",
            ),
            User(
                email=OTHER_EMAIL,
                name="Other User",
                password_hash=PASSWORD_HASH,
                role="CUSTOMER",
            ),
        ])
        db.commit()


@pytest.fixture(autouse=True)
def fresh_db() -> None:
    _reset_db()


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def login(client: TestClient, email: str = DEMO_EMAIL) -> dict[str, str]:
    response = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def auth_headers(client: TestClient) -> dict[str, str]:
    return login(client)


@pytest.fixture()
def db_session():
    with SessionLocal() as db:
        yield db


@pytest.fixture()
def demo_user(db_session) -> User:
    return db_session.query(User).filter_by(email=DEMO_EMAIL).one()


@pytest.fixture()
def store(db_session, demo_user) -> LedgerStore:
    return LedgerStore(db_session, demo_user.id)


@pytest.fixture()
def other_headers() -> dict[str, str]:
    return login(TestClient(app), OTHER_EMAIL)
