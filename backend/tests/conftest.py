import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dental_ledger.db.session import get_db
from dental_ledger.main import app
from dental_ledger.models import Base
from dental_ledger.models.user import Role
from dental_ledger.services.patients import create_patient
from dental_ledger.services.users import create_user


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def admin(db):
    user = create_user(db, email="admin@smileclinic.in", full_name="Clinic Admin", role=Role.admin)
    db.commit()
    return user


@pytest.fixture()
def doctor(db):
    user = create_user(db, email="dr.mehta@smileclinic.in", full_name="Dr Kavya Mehta", role=Role.doctor)
    db.commit()
    return user


@pytest.fixture()
def receptionist(db):
    user = create_user(
        db, email="front.desk@smileclinic.in", full_name="Ravi Nair", role=Role.receptionist
    )
    db.commit()
    return user


@pytest.fixture()
def patient(db, admin):
    patient = create_patient(db, first_name="Asha", last_name="Rao", actor=admin)
    db.commit()
    return patient


@pytest.fixture()
def other_patient(db, admin):
    patient = create_patient(db, first_name="Vikram", last_name="Iyer", actor=admin)
    db.commit()
    return patient


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def admin_headers(admin):
    return {"X-User-Id": str(admin.id)}
