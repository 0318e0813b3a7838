import pytest
import os
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["COMPANY_NAME"] = "ACME PAYROLL"
os.environ["CURRENCY"] = "USD"

from payroll_app.database import Base, get_db, enable_sqlite_savepoints
from payroll_app.main import app
from payroll_app.models.deduction import DeductionEntry
from payroll_app.models.employee import Employee
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Get a clean database session for each test function with rollback safety."""
    connection = engine.connect()
    transaction = connection.begin()
    # Service commits release savepoints; the outer transaction is rolled back
    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def admin_headers():
    return {"X-Actor-Id": "admin-1", "X-Actor-Role": "admin"}


@pytest.fixture(scope="function")
def employee_headers():
    """Headers for an employee actor acting as the given employee id."""
    def _headers(employee_id):
        return {"X-Actor-Id": str(employee_id), "X-Actor-Role": "employee"}
    return _headers


@pytest.fixture(scope="function")
def make_employee(db_session):
    """
    Factory for employees with deduction entries.

    Deductions are given as dicts with DeductionEntry column names.
    """
    counter = {"n": 0}

    def _make(salary="5000.00", deductions=(), status="active", **fields):
        counter["n"] += 1
        employee = Employee(
            first_name=fields.pop("first_name", "Employee"),
            last_name=fields.pop("last_name", str(counter["n"])),
            email=fields.pop("email", f"employee{counter['n']}@acme.com"),
            department=fields.pop("department", "Engineering"),
            position=fields.pop("position", "Developer"),
            salary=Decimal(salary) if salary is not None else None,
            status=status,
            **fields
        )
        employee.deductions = [
            DeductionEntry(**{"calculation_type": "fixed", **d}) for d in deductions
        ]
        db_session.add(employee)
        db_session.commit()
        db_session.refresh(employee)
        return employee

    return _make


@pytest.fixture(scope="function")
def standard_deductions():
    """Tax 10% of gross and a 300.00 health insurance premium."""
    return [
        {"deduction_type": "tax", "calculation_type": "percentage", "value": Decimal("0.10")},
        {"deduction_type": "health_insurance", "calculation_type": "fixed", "value": Decimal("300.00")},
    ]
