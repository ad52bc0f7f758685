# =============================================================================
# CONFTEST - Shared fixtures
# =============================================================================
# SQLite databases under tmp_path, temp upload dirs and a scripted generator
# standing in for the OpenAI service.
# =============================================================================

import os

# Never let the test run touch a configured deployment database
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy.orm import sessionmaker

from database.database import Base, make_engine
from ingestion.parser import ContentExtractor
from ingestion.uploads import TemporaryUploadManager
from tests.factories import ScriptedGenerator, make_quiz


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so separate sessions (and threads) see each other's commits."""
    engine = make_engine(f"sqlite:///{tmp_path / 'quizforge-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def quiz(db):
    return make_quiz(db, question_count=4)


# =============================================================================
# PIPELINE FIXTURES
# =============================================================================


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def uploads(upload_dir):
    return TemporaryUploadManager(tmp_dir=str(upload_dir))


@pytest.fixture
def extractor():
    return ContentExtractor()


@pytest.fixture
def generator():
    return ScriptedGenerator()


@pytest.fixture
def lesson_text():
    """Exactly 500 characters of plain course material."""
    paragraph = (
        "Photosynthesis converts light energy into chemical energy stored in glucose. "
        "It takes place in the chloroplasts of plant cells, where chlorophyll absorbs light. "
        "The light-dependent reactions produce ATP and NADPH, which power the Calvin cycle. "
    )
    return (paragraph * 3)[:500]
