"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE__URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PAYMENT__DEFAULT_PROVIDER"] = "simulator"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["BACKEND_URL"] = "http://backend.test"

import asyncio
import itertools
from decimal import Decimal
from functools import partial
from types import SimpleNamespace
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from application.dto import CurrentUserDTO
from application.dtos.payments import PaymentRequest, PaymentRequestResult, PaymentVerification
from domain.user.entity import UserRole
from infrastructure.database import build_engine
from infrastructure.models import Base, CourseModel, EnrollmentModel, UserModel
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


class StubGateway:
    """Recording gateway; set ``request_error``/``verify_error`` to make calls fail."""

    provider = "stub"

    def __init__(self) -> None:
        self.requests: list[PaymentRequest] = []
        self.verifications: list[tuple[str, Decimal]] = []
        self.request_error: Optional[Exception] = None
        self.verify_error: Optional[Exception] = None
        self._authorities = itertools.count(1)
        self._ref_ids = itertools.count(1000)

    async def request_payment(self, req: PaymentRequest) -> PaymentRequestResult:
        self.requests.append(req)
        await asyncio.sleep(0)
        if self.request_error is not None:
            raise self.request_error
        authority = f"A{next(self._authorities)}"
        return PaymentRequestResult(
            authority=authority,
            payment_url=f"https://gateway.test/StartPay/{authority}",
            provider=self.provider,
        )

    async def verify_payment(self, authority: str, amount: Decimal) -> PaymentVerification:
        self.verifications.append((authority, amount))
        await asyncio.sleep(0)
        if self.verify_error is not None:
            raise self.verify_error
        return PaymentVerification(authority=authority, ref_id=str(next(self._ref_ids)), provider=self.provider)


@pytest_asyncio.fixture
async def engine(tmp_path):
    # File-backed so concurrent units of work get separate connections
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'enrollments.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def uow_factory(session_factory):
    return partial(SQLAlchemyUnitOfWork, session_factory)


@pytest.fixture
def gateway():
    return StubGateway()


@pytest_asyncio.fixture
async def seed(session_factory):
    """Instructor, two students, an admin and one course per pricing case."""
    async with session_factory() as session:
        async with session.begin():
            session.add_all([
                UserModel(id=1, email="tina@example.com", first_name="Tina", last_name="Instructor", role="instructor"),
                UserModel(id=2, email="sara@example.com", first_name="Sara", last_name="Student",
                          role="student", phone="09120000000"),
                UserModel(id=3, email="omid@example.com", first_name="Omid", last_name="Other", role="student"),
                UserModel(id=4, email="admin@example.com", first_name="Ada", last_name="Admin", role="admin"),
                UserModel(id=5, email="gone@example.com", first_name="Gone", last_name="Away",
                          role="student", is_active=False),
            ])
        async with session.begin():
            session.add_all([
                CourseModel(id=10, title="Intro to Python", instructor_id=1, price=Decimal("0"), status="published"),
                CourseModel(id=11, title="Async Python", instructor_id=1, price=Decimal("100000"), status="published"),
                CourseModel(id=12, title="Data Pipelines", instructor_id=1, price=Decimal("250000"),
                            discount_price=Decimal("150000"), status="published"),
                CourseModel(id=13, title="Unreleased", instructor_id=1, price=Decimal("50000"), status="draft"),
            ])
    return SimpleNamespace(
        instructor_id=1,
        student_id=2,
        other_student_id=3,
        admin_id=4,
        inactive_id=5,
        free_course=10,
        paid_course=11,
        discounted_course=12,
        draft_course=13,
    )


def make_user(user_id: int, role: UserRole, email: str = "user@example.com") -> CurrentUserDTO:
    return CurrentUserDTO(id=user_id, email=email, full_name="Test User", role=role, is_active=True)


@pytest.fixture
def student(seed):
    return make_user(seed.student_id, UserRole.STUDENT, "sara@example.com")


@pytest.fixture
def admin(seed):
    return make_user(seed.admin_id, UserRole.ADMIN, "admin@example.com")


@pytest.fixture
def read_counters(session_factory):
    """Returns (course.total_enrollments, instructor.total_students_enrolled)."""

    async def _read(course_id: int, instructor_id: int = 1):
        async with session_factory() as session:
            course = (await session.execute(
                select(CourseModel.total_enrollments).where(CourseModel.id == course_id)
            )).scalar_one()
            instructor = (await session.execute(
                select(UserModel.total_students_enrolled).where(UserModel.id == instructor_id)
            )).scalar_one()
        return course, instructor

    return _read


@pytest.fixture
def count_enrollments(session_factory):
    async def _count(student_id: int, course_id: int) -> int:
        async with session_factory() as session:
            rows = (await session.execute(
                select(EnrollmentModel.id).where(
                    EnrollmentModel.student_id == student_id,
                    EnrollmentModel.course_id == course_id,
                )
            )).all()
        return len(rows)

    return _count
