"""
Test fixtures for inkwell tests.

Provides database session fixtures, an API client bound to the test
database, users with tokens, and a small data factory.
"""

import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-inkwell-tests-only")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import random
import string
from datetime import datetime, timedelta, timezone
from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.pool import StaticPool

import inkwell.models  # noqa: F401
from inkwell.core import security
from inkwell.core.jwt import create_access_token
from inkwell.models.comment import Comment
from inkwell.models.post import Post
from inkwell.models.user import User
from inkwell.schemas import PostCreate
from inkwell.services.posts import create_post

TEST_DATABASE_URL = "sqlite:///:memory:"

# Hashing is slow by design; one hash shared by every fixture user
TEST_PASSWORD = "testpassword123"
TEST_PASSWORD_HASH = security.get_password_hash(TEST_PASSWORD)


@pytest.fixture(autouse=True)
def clear_rate_limiters():
    """Clear rate limiters before each test to prevent 429 errors."""
    from inkwell.core.rate_limit import rate_limiter

    rate_limiter.clear()
    yield


@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def test_session(test_engine) -> Generator[Session, None, None]:
    """Provide a test database session."""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(scope="function")
def client(test_engine):
    """Create test client with test database."""
    from inkwell.db import get_session
    from inkwell.main import app

    def override_get_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


# ============================================
# User / Auth Fixtures
# ============================================


def _make_user(session: Session, username: str, email: str, role: str = "user", **kwargs) -> User:
    user = User(
        username=username,
        email=email,
        hashed_password=TEST_PASSWORD_HASH,
        role=role,
        **kwargs,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def token_headers(user: User) -> dict:
    token = create_access_token(subject=user.email, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def author(test_session: Session) -> User:
    """A regular user who writes posts."""
    return _make_user(test_session, "alice", "alice@example.com", bio="Writes about Python")


@pytest.fixture
def reader(test_session: Session) -> User:
    """A second regular user."""
    return _make_user(test_session, "bob", "bob@example.com")


@pytest.fixture
def admin_user(test_session: Session) -> User:
    return _make_user(test_session, "root", "root@example.com", role="admin")


@pytest.fixture
def inactive_user(test_session: Session) -> User:
    return _make_user(test_session, "ghost", "ghost@example.com", is_active=False)


@pytest.fixture
def author_headers(author: User) -> dict:
    return token_headers(author)


@pytest.fixture
def reader_headers(reader: User) -> dict:
    return token_headers(reader)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return token_headers(admin_user)


@pytest.fixture
def factory(test_session: Session) -> "BlogFactory":
    return BlogFactory(test_session)


# ============================================
# Test Data Factory
# ============================================


class BlogFactory:
    """
    Factory for users, posts and comments.
    Posts go through the post service so slugs and reading times are real.
    """

    WORDS = [
        "python", "async", "database", "schema", "query", "cache",
        "deploy", "testing", "review", "pattern", "service", "index",
    ]

    def __init__(self, session: Session):
        self.session = session
        self._base_time = datetime.now(timezone.utc) - timedelta(days=30)
        self._tick = 0

    def random_string(self, length: int = 8) -> str:
        return "".join(random.choices(string.ascii_lowercase, k=length))

    def next_time(self) -> datetime:
        """Strictly increasing timestamps so newest-first order is predictable."""
        self._tick += 1
        return self._base_time + timedelta(minutes=self._tick)

    def create_user(self, username: Optional[str] = None, role: str = "user", **kwargs) -> User:
        username = username or f"user_{self.random_string(6)}"
        return _make_user(self.session, username, f"{username}@example.com", role=role, **kwargs)

    def create_post(
        self,
        author: User,
        title: Optional[str] = None,
        content: Optional[str] = None,
        tags: Optional[List[str]] = None,
        status: str = "published",
        **kwargs,
    ) -> Post:
        title = title or " ".join(random.choices(self.WORDS, k=3)).title()
        content = content or " ".join(random.choices(self.WORDS, k=50))
        data = PostCreate(title=title, content=content, tags=tags or [], status=status, **kwargs)
        post = create_post(self.session, author, data)
        post.created_at = self.next_time()
        self.session.add(post)
        self.session.commit()
        self.session.refresh(post)
        return post

    def create_posts(self, author: User, count: int, **kwargs) -> List[Post]:
        return [self.create_post(author, title=f"Post number {i}", **kwargs) for i in range(count)]

    def create_comment(
        self,
        post: Post,
        author: User,
        parent: Optional[Comment] = None,
        content: Optional[str] = None,
        status: str = "approved",
    ) -> Comment:
        comment = Comment(
            content=content or f"Comment {self.random_string(6)}",
            author_id=author.id,
            post_id=post.id,
            parent_id=parent.id if parent else None,
            status=status,
            created_at=self.next_time(),
        )
        self.session.add(comment)
        self.session.commit()
        self.session.refresh(comment)
        return comment
