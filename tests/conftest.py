"""Pytest configuration and shared fixtures."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from auditing.database import Base
from auditing.settings import Settings
# Import models to register them with SQLAlchemy Base
from auditing.models.audit import Audit  # noqa: F401
from factories import Article, ApiModel, make_article  # noqa: F401


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    # One shared connection so the API test client sees the same data
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    TestingSessionLocal = sessionmaker(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def settings():
    """Default settings, isolated from the environment."""
    return Settings(_env_file=None, enabled=True, console=False, strict=False, timestamps=False, threshold=0)


@pytest.fixture
def sample_article(db_session):
    """Create a saved article, loaded and ready to be modified."""
    article = make_article()
    db_session.add(article)
    db_session.commit()
    db_session.refresh(article)
    return article
