"""
Shared fixtures: in-memory SQLite database, FastAPI test client and
mocked AWS / Anthropic clients.
"""
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["OCR_BACKENDS"] = "claude,textract"

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pixelpharm.api.dependencies import (
    get_claude_service,
    get_db,
    get_storage_service,
    get_textract_service,
)
from pixelpharm.database import Base
from pixelpharm.main import app
from pixelpharm.models import User
from pixelpharm.services.claude_service import ClaudeService
from pixelpharm.services.storage_service import StorageService
from pixelpharm.services.textract_service import TextractService


# ============================================
# DATABASE
# ============================================

@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN; emit it ourselves so SAVEPOINTs nest properly
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """Session bound to the test database."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    """Factory for users on a given plan."""
    def _make_user(user_id="user-1", plan_type="basic", expires_in_days=30, status="active", **kwargs):
        user = User(
            id=user_id,
            email=f"{user_id}@example.com",
            plan_type=plan_type,
            subscription_status=status,
            subscription_expires_at=(
                datetime.utcnow() + timedelta(days=expires_in_days) if expires_in_days is not None else None
            ),
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user
    return _make_user


# ============================================
# EXTERNAL CLIENTS
# ============================================

@pytest.fixture
def s3_client():
    """Mock boto3 S3 client; get_object returns a small text document by default."""
    client = MagicMock()
    body = MagicMock()
    body.read.return_value = b"Glucose: 95 mg/dL (70-100)\nTotal Cholesterol: 180 mg/dL"
    client.get_object.return_value = {"Body": body}
    client.generate_presigned_url.return_value = "https://s3.example.com/presigned"
    return client


@pytest.fixture
def textract_client():
    """Mock boto3 Textract client returning LINE blocks."""
    client = MagicMock()
    blocks = [
        {"BlockType": "PAGE"},
        {"BlockType": "LINE", "Text": "Quest Diagnostics"},
        {"BlockType": "LINE", "Text": "Collected: 15/03/2024"},
        {"BlockType": "LINE", "Text": "Glucose: 110 mg/dL H"},
        {"BlockType": "LINE", "Text": "HDL Cholesterol: 55 mg/dL"},
    ]
    client.detect_document_text.return_value = {"Blocks": blocks}
    client.analyze_document.return_value = {"Blocks": blocks}
    return client


@pytest.fixture
def anthropic_client():
    """Mock Anthropic client; set .text on the returned content to change the reply."""
    client = MagicMock()
    content = MagicMock()
    content.text = '{"biomarkers": [], "testInfo": {}, "confidence": "high"}'
    client.messages.create.return_value.content = [content]
    return client


@pytest.fixture
def storage(s3_client):
    return StorageService(client=s3_client, bucket="test-bucket")


@pytest.fixture
def textract(textract_client):
    return TextractService(client=textract_client)


@pytest.fixture
def claude(anthropic_client):
    return ClaudeService(client=anthropic_client, model="test-model")


# ============================================
# API
# ============================================

@pytest.fixture
def client(db, storage, textract, claude):
    """TestClient with the database and external services overridden."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_textract_service] = lambda: textract
    app.dependency_overrides[get_claude_service] = lambda: claude
    yield TestClient(app)
    app.dependency_overrides.clear()
