"""
Shared fixtures: an app built with TestConfig (in-memory SQLite, rate limits
off), a test client, users on each plan and JWT headers for them.
"""
import io
import json
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import docx
import fitz
import pytest
from flask_jwt_extended import create_access_token

from config import TestConfig
from cvbuilder import create_app
from cvbuilder.extensions import bcrypt, db
from cvbuilder.models import User
from cvbuilder.services.openai_service import OpenAIClient

PASSWORD = "password123"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(email="user@example.com", tier="free", expires_at=None, name="Test User"):
        user = User(
            name=name,
            email=email,
            password=bcrypt.generate_password_hash(PASSWORD).decode("utf-8"),
            subscription_tier=tier,
            subscription_expires_at=expires_at,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def premium_user(make_user):
    return make_user(
        email="premium@example.com",
        tier="premium",
        expires_at=datetime.utcnow() + timedelta(days=30),
        name="Premium User",
    )


def headers_for(user):
    token = create_access_token(identity=str(user.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(user):
    return headers_for(user)


@pytest.fixture
def premium_headers(premium_user):
    return headers_for(premium_user)


@pytest.fixture
def cv_data():
    """A complete CV document that passes validation."""
    return {
        "name": "Backend Engineer",
        "template": "modern",
        "contact": {
            "name": "Jane Doe",
            "email": "jane@example.com",
            "phone": "+1 555 0100",
            "location": "Berlin, DE",
            "linkedin": "https://linkedin.com/in/janedoe",
        },
        "summary": "Backend engineer focused on Python services, APIs and data pipelines at scale.",
        "experience": [
            {
                "id": "exp-1",
                "title": "Senior Engineer",
                "company": "Acme",
                "location": "Berlin",
                "startDate": "2020-01",
                "isPresent": True,
                "bullets": ["Built the billing API", "Mentored four engineers"],
                "skills": ["Flask"],
            },
            {
                "id": "exp-2",
                "title": "Engineer",
                "company": "Globex",
                "location": "Munich",
                "startDate": "2016-05",
                "endDate": "2019-12",
                "isPresent": False,
                "bullets": ["Maintained ETL jobs"],
            },
        ],
        "education": [
            {
                "id": "edu-1",
                "degree": "BSc Computer Science",
                "institution": "TU Berlin",
                "startDate": "2012-10",
                "endDate": "2016-04",
                "gpa": "3.8",
            },
        ],
        "skills": ["Python", "SQL", "Docker"],
        "projects": [
            {
                "id": "proj-1",
                "name": "cvkit",
                "description": "CLI for rendering CVs",
                "technologies": ["Python", "Click"],
            },
        ],
        "certifications": [
            {"id": "cert-1", "name": "AWS SAA", "issuer": "Amazon", "issueDate": "2021-06"},
        ],
        "languages": [{"id": "lang-1", "name": "German", "proficiency": "native"}],
        "awards": [],
        "publications": [],
        "volunteerWork": [
            {
                "id": "vol-1",
                "organization": "Code Club",
                "role": "Mentor",
                "startDate": "2018-01",
                "isPresent": True,
            },
        ],
        "customSections": [
            {"id": "custom-1", "title": "Interests", "type": "list", "items": ["Climbing"]},
        ],
        "metadata": {
            "lastModified": "2024-01-01T00:00:00.000Z",
            "version": 3,
            "atsScore": 72,
            "keywords": ["python"],
        },
    }


def text_completion(content, prompt_tokens=60, completion_tokens=40):
    """Fake plain chat completion."""
    message = SimpleNamespace(content=content, tool_calls=None)
    usage = SimpleNamespace(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def pdf_bytes(text):
    """Single-page PDF with ``text`` drawn on it (blank when empty)."""
    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


def docx_bytes(lines):
    document = docx.Document()
    for line in lines:
        document.add_paragraph(line)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def structured_completion(payload, prompt_tokens=120, completion_tokens=80):
    """Fake chat completion carrying a structured_output tool call."""
    tool_call = SimpleNamespace(function=SimpleNamespace(name="structured_output", arguments=json.dumps(payload)))
    message = SimpleNamespace(content=None, tool_calls=[tool_call])
    usage = SimpleNamespace(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


@pytest.fixture
def mock_openai(app):
    """Installs an OpenAIClient backed by a MagicMock SDK client."""
    sdk = MagicMock()
    app.extensions["openai_client"] = OpenAIClient(client=sdk, retry_delay=0)
    return sdk
