import io
from datetime import datetime, timedelta
from unittest.mock import patch

import httpx
import openai
import pytest

from cvbuilder.extensions import db
from cvbuilder.models import AIUsage
from cvbuilder.services.openai_service import OpenAIClient

from conftest import docx_bytes, headers_for, pdf_bytes, structured_completion

JOB_DESCRIPTION = (
    "Senior backend engineer: design REST APIs in Python and Flask, run PostgreSQL in "
    "production, and lead code reviews."
)

COVER_LETTER = {
    "jobDescription": JOB_DESCRIPTION,
    "company": "Globex",
    "position": "Backend Engineer",
    "tone": "enthusiastic",
}


@pytest.fixture
def unconfigured_ai(app):
    app.extensions["openai_client"] = OpenAIClient(api_key=None)


def test_analyze_job(client, auth_headers, mock_openai):
    mock_openai.chat.completions.create.return_value = structured_completion({"keywords": ["flask"]}, 100, 50)

    response = client.post("/api/ai/analyze-job", json={"jobDescription": JOB_DESCRIPTION}, headers=auth_headers)

    body = response.get_json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["data"] == {"keywords": ["flask"]}
    assert body["usage"]["totalTokens"] == 150
    assert body["model"] == "gpt-4-turbo-preview"
    assert response.headers["X-RateLimit-Limit-Daily"] == "10000"
    assert response.headers["X-RateLimit-Remaining-Daily"] == "9850"


@patch("cvbuilder.services.openai_service.time.sleep")
def test_model_rate_limit_is_reported_as_429(sleep, client, auth_headers, mock_openai):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(429, request=request, headers={"retry-after": "17"})
    mock_openai.chat.completions.create.side_effect = openai.RateLimitError(
        "slow down", response=response, body=None,
    )

    response = client.post("/api/ai/analyze-job", json={"jobDescription": JOB_DESCRIPTION}, headers=auth_headers)

    error = response.get_json()["error"]
    assert response.status_code == 429
    assert error["code"] == "RATE_LIMIT_EXCEEDED"
    assert error["details"] == {"retryAfter": 17}
    assert response.headers["Retry-After"] == "17"
    assert mock_openai.chat.completions.create.call_count == 3
    assert db.session.query(AIUsage).count() == 0


def test_analyze_job_validation(client, auth_headers, mock_openai):
    response = client.post("/api/ai/analyze-job", json={"jobDescription": "too short"}, headers=auth_headers)

    assert response.status_code == 400
    mock_openai.chat.completions.create.assert_not_called()


def test_ai_requires_login(client):
    assert client.post("/api/ai/analyze-job", json={"jobDescription": JOB_DESCRIPTION}).status_code == 401


def test_unconfigured_ai_is_unavailable(client, auth_headers, unconfigured_ai):
    response = client.post("/api/ai/analyze-job", json={"jobDescription": JOB_DESCRIPTION}, headers=auth_headers)

    assert response.status_code == 503
    assert response.get_json()["error"]["code"] == "AI_UNAVAILABLE"
    assert client.get("/api/ai/health").status_code == 503


def test_usage_limit_maps_to_429(client, auth_headers, user, mock_openai):
    db.session.add(AIUsage(user_id=user.id, feature="ats_analysis", total_tokens=9_900,
                           created_at=datetime.utcnow()))
    db.session.commit()

    response = client.post("/api/ai/analyze-job", json={"jobDescription": JOB_DESCRIPTION}, headers=auth_headers)

    error = response.get_json()["error"]
    assert response.status_code == 429
    assert error["code"] == "USAGE_LIMIT_EXCEEDED"
    assert error["details"]["resetTime"]


def test_model_failure_maps_to_500(client, auth_headers, mock_openai):
    mock_openai.chat.completions.create.side_effect = RuntimeError("model exploded")

    response = client.post("/api/ai/analyze-job", json={"jobDescription": JOB_DESCRIPTION}, headers=auth_headers)

    assert response.status_code == 500
    assert response.get_json()["error"]["message"] == "model exploded"


def test_generate_bullets(client, auth_headers, mock_openai):
    mock_openai.chat.completions.create.return_value = structured_completion({"optimized": ["Shipped X"]})

    response = client.post("/api/ai/generate-bullets", json={
        "jobTitle": "Engineer",
        "company": "Acme",
        "industry": "Retail",
        "responsibilities": ["Own checkout"],
        "achievements": ["Raised conversion 5%"],
        "skills": ["Python"],
    }, headers=auth_headers)

    assert response.status_code == 200
    assert response.get_json()["data"]["optimized"] == ["Shipped X"]


def test_generate_summary(client, auth_headers, mock_openai):
    mock_openai.chat.completions.create.return_value = structured_completion({"summary": "Seasoned engineer"})

    response = client.post("/api/ai/generate-summary", json={
        "experience": [{"title": "Engineer", "company": "Acme", "years": 4}],
        "targetRole": "Lead Engineer",
        "industry": "Retail",
        "level": "senior",
        "tone": "dynamic",
    }, headers=auth_headers)

    assert response.status_code == 200


def test_analyze_ats_from_stored_cv(client, auth_headers, mock_openai, cv_data):
    mock_openai.chat.completions.create.return_value = structured_completion({"overallScore": 81})
    cv = client.post("/api/cvs", json={"name": "Mine", "data": cv_data}, headers=auth_headers).get_json()["cv"]

    response = client.post("/api/ai/analyze-ats", json={"cvId": cv["id"]}, headers=auth_headers)

    assert response.status_code == 200
    prompt = mock_openai.chat.completions.create.call_args.kwargs["messages"][-1]["content"]
    assert "Senior Engineer | Acme | Berlin" in prompt


def test_analyze_ats_needs_a_source(client, auth_headers, mock_openai):
    response = client.post("/api/ai/analyze-ats", json={"industry": "SaaS"}, headers=auth_headers)

    assert response.status_code == 400


def test_analyze_ats_other_users_cv(client, auth_headers, make_user, mock_openai, cv_data):
    other = make_user(email="other@example.com")
    cv = client.post("/api/cvs", json={"name": "Theirs", "data": cv_data},
                     headers=headers_for(other)).get_json()["cv"]

    response = client.post("/api/ai/analyze-ats", json={"cvId": cv["id"]}, headers=auth_headers)

    assert response.status_code == 403


def test_cover_letter_requires_premium(client, auth_headers, mock_openai, cv_data):
    response = client.post("/api/ai/premium/cover-letter", json={**COVER_LETTER, "cvData": cv_data},
                           headers=auth_headers)

    assert response.status_code == 403
    assert response.get_json()["error"]["code"] == "PREMIUM_REQUIRED"


def test_cover_letter_for_premium_user(client, premium_headers, mock_openai, cv_data):
    mock_openai.chat.completions.create.return_value = structured_completion({"content": "Dear Globex"})

    response = client.post("/api/ai/premium/cover-letter", json={**COVER_LETTER, "cvData": cv_data},
                           headers=premium_headers)

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit-Daily"] == "100000"


def test_cover_letter_needs_cv(client, premium_headers, mock_openai):
    response = client.post("/api/ai/premium/cover-letter", json=COVER_LETTER, headers=premium_headers)

    assert response.status_code == 400


def test_expired_premium_is_refused(client, make_user, mock_openai):
    lapsed = make_user(email="lapsed@example.com", tier="premium",
                       expires_at=datetime.utcnow() - timedelta(days=1))

    response = client.post("/api/ai/premium/industry-analysis", json={
        "industry": "Fintech", "role": "Engineer", "experience": "5 years",
    }, headers=headers_for(lapsed))

    assert response.status_code == 403


def test_industry_analysis_for_enterprise(client, make_user, mock_openai):
    enterprise = make_user(email="corp@example.com", tier="enterprise")
    mock_openai.chat.completions.create.return_value = structured_completion({"marketTrends": ["AI"]})

    response = client.post("/api/ai/premium/industry-analysis", json={
        "industry": "Fintech", "role": "Engineer", "experience": "5 years", "location": "Berlin",
    }, headers=headers_for(enterprise))

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit-Daily"] == "500000"


def test_usage_endpoint(client, auth_headers, user, mock_openai):
    db.session.add(AIUsage(user_id=user.id, feature="ats_analysis", total_tokens=500, cost=0.01,
                           created_at=datetime.utcnow()))
    db.session.commit()

    body = client.get("/api/ai/usage?range=week", headers=auth_headers).get_json()

    assert body["planType"] == "FREE"
    assert body["usage"]["dailyUsed"] == 500
    assert body["stats"]["totalRequests"] == 1
    assert body["warnings"]["dailyWarning"] is False
    assert client.get("/api/ai/usage?range=year", headers=auth_headers).status_code == 400


def test_ai_health(client, mock_openai):
    response = client.get("/api/ai/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def _upload(client, headers, data, filename, content_type=None):
    return client.post(
        "/api/ai/parse-cv",
        data={"file": (io.BytesIO(data), filename, content_type)},
        headers=headers,
        content_type="multipart/form-data",
    )


def test_parse_cv_pdf(client, auth_headers, mock_openai):
    pdf = pdf_bytes("Jane Doe\njane@example.com\nSkills\nPython\nSQL")

    response = _upload(client, auth_headers, pdf, "cv.pdf", "application/pdf")

    body = response.get_json()
    assert response.status_code == 200
    profile = body["data"]["profile"]
    assert (profile["firstName"], profile["lastName"]) == ("Jane", "Doe")
    assert profile["emailAddress"] == "jane@example.com"
    assert [s["name"] for s in body["data"]["skills"]] == ["Python", "SQL"]
    assert "jane@example.com" in body["extractedText"]
    mock_openai.chat.completions.create.assert_not_called()


def test_parse_cv_docx(client, auth_headers):
    data = docx_bytes(["John Smith", "Experience", "Platform Engineer", "Acme Ltd", "Skills", "Go"])

    response = _upload(client, auth_headers, data, "cv.docx")

    body = response.get_json()["data"]
    assert response.status_code == 200
    assert body["profile"]["firstName"] == "John"
    assert [(p["title"], p["companyName"]) for p in body["positions"]] == [("Platform Engineer", "Acme Ltd")]
    assert body["skills"] == [{"name": "Go", "endorsementCount": None}]


def test_parse_cv_truncates_extracted_text(client, auth_headers):
    text = "Jane Doe\n" + "lorem ipsum " * 200

    body = _upload(client, auth_headers, text.encode("utf-8"), "cv.txt", "text/plain").get_json()

    assert len(body["extractedText"]) == 1003
    assert body["extractedText"].endswith("...")


def test_parse_cv_errors(client, auth_headers):
    missing = client.post("/api/ai/parse-cv", data={}, headers=auth_headers, content_type="multipart/form-data")
    assert missing.status_code == 400
    assert missing.get_json()["error"]["message"] == "No file provided"

    blank = _upload(client, auth_headers, pdf_bytes(""), "scan.pdf", "application/pdf")
    assert blank.status_code == 400
    assert blank.get_json()["error"]["code"] == "PARSE_ERROR"

    image = _upload(client, auth_headers, b"\x89PNG\r\n\x1a\n", "photo.png", "image/png")
    assert image.status_code == 415
    assert image.get_json()["error"]["code"] == "UNSUPPORTED_MEDIA_TYPE"


def test_parse_cv_requires_login(client):
    response = client.post(
        "/api/ai/parse-cv",
        data={"file": (io.BytesIO(b"Jane Doe, engineer"), "cv.txt")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 401


def test_parse_cv_status(client, unconfigured_ai):
    body = client.get("/api/ai/parse-cv").get_json()

    assert body["message"] == "Parse CV endpoint is working"
    assert body["openaiConfigured"] is False
