import os
import sys

import pytest

# ensure backend/ is importable when running from the tests folder
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
# keep the app's own engine in memory instead of creating a database file
os.environ["DATABASE_URL"] = "sqlite://"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, enable_sqlite_foreign_keys, get_db, init_db
from main import app
from models.category import Category
from models.employee import Employee, EmployeeStatus
from models.users import User
from services.stock_service import create_product
from utils.tokenJWT import create_access_token

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    init_db(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _user(db, email, role):
    user = User(email=email, password_hash="not-a-bcrypt-hash", role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return _user(db, "admin@example.com", "admin")


@pytest.fixture
def operator(db):
    return _user(db, "operador@example.com", "user")


def auth_headers(user):
    token = create_access_token({"sub": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def user_headers(operator):
    return auth_headers(operator)


@pytest.fixture
def category(db):
    c = Category(name="Limpeza")
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def employee(db):
    e = Employee(code="C001", name="Ana Souza", status=EmployeeStatus.ACTIVE)
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


@pytest.fixture
def inactive_employee(db):
    e = Employee(code="C009", name="Zeca Inativo", status=EmployeeStatus.INACTIVE)
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


@pytest.fixture
def liter_product(db, category):
    return create_product(db, code="1001", name="Detergente", unit="l", quantity=10, min_quantity=2,
                          category_id=category.id)


@pytest.fixture
def unit_product(db, category):
    return create_product(db, code="2001", name="Pano de chão", unit="un", quantity=5, min_quantity=1,
                          category_id=category.id)
