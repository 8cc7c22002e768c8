from datetime import datetime, timedelta
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from cvbuilder.extensions import db
from cvbuilder.models import AIUsage

from conftest import headers_for


def test_profile_includes_stats(client, auth_headers, user):
    client.post("/api/cvs", json={"name": "One"}, headers=auth_headers)
    db.session.add(AIUsage(user_id=user.id, feature="ats_analysis", total_tokens=120))
    db.session.commit()

    body = client.get("/api/user/profile", headers=auth_headers).get_json()

    assert body["user"]["email"] == "user@example.com"
    assert body["user"]["stats"] == {"totalCVs": 1, "totalAIRequests": 1, "totalTokensUsed": 120}


def test_premium_features_gate(client, auth_headers, premium_headers, make_user):
    denied = client.get("/api/premium/features", headers=auth_headers)
    assert denied.status_code == 403
    assert denied.get_json()["error"]["details"] == {"subscriptionTier": "free"}

    allowed = client.get("/api/premium/features", headers=premium_headers)
    assert allowed.status_code == 200
    assert allowed.get_json()["features"]["aiAnalysis"] is True

    lapsed = make_user(email="lapsed@example.com", tier="premium",
                       expires_at=datetime.utcnow() - timedelta(seconds=1))
    assert client.get("/api/premium/features", headers=headers_for(lapsed)).status_code == 403


def test_premium_requires_token(client):
    assert client.get("/api/premium/features").status_code == 401


def test_health(client):
    response = client.get("/api/health")

    body = response.get_json()
    assert response.status_code == 200
    assert body["status"] == "ok"
    assert body["services"]["database"] == "connected"


def test_health_reports_database_failure(client):
    with patch.object(db.session, "execute", side_effect=OperationalError("SELECT 1", {}, Exception("down"))):
        response = client.get("/api/health")

    assert response.status_code == 500
    assert response.get_json()["services"]["database"] == "disconnected"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "NOT_FOUND"
