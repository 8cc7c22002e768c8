import logging

from flask import Blueprint, jsonify, request
from flask_jwt_extended import current_user, jwt_required

import cvbuilder.databases as databases
from cvbuilder.extensions import ai_rate_limit, limiter
from cvbuilder.schemas.ai import (
    ATSAnalysisRequest,
    BulletPointRequest,
    CoverLetterRequest,
    IndustryAnalysisRequest,
    JobAnalysisRequest,
    SummaryRequest,
    UsageQuery,
)
from cvbuilder.services import ai_service, cv_parser, usage_tracker
from cvbuilder.services.cv_transforms import convert_cv_to_plain_text, now_iso
from cvbuilder.services.openai_service import get_openai_client
from cvbuilder.utils.auth_guard import premium_required
from cvbuilder.utils.responses import ai_rate_limited_response, error_response

logger = logging.getLogger(__name__)

ai_bp = Blueprint("ai", __name__, url_prefix="/api/ai")


def _json_body():
    return request.get_json(silent=True) or {}


def _plan_type():
    """Plan used for token limits; lapsed subscriptions fall back to FREE."""
    if current_user.subscription_tier != "free" and not current_user.has_active_premium():
        return "FREE"
    return current_user.plan_type


def _unavailable():
    return error_response("AI_UNAVAILABLE", "AI service is not configured", 503)


def _respond(result, plan_type):
    if not result["success"]:
        if result.get("code") == ai_service.USAGE_LIMIT:
            return error_response(
                "USAGE_LIMIT_EXCEEDED",
                result["error"],
                429,
                details={"resetTime": result.get("resetTime")},
            )
        if result.get("code") == ai_service.PREMIUM_REQUIRED:
            return error_response("PREMIUM_REQUIRED", result["error"], 403)
        if result.get("code") == "RATE_LIMIT":
            return ai_rate_limited_response(result)
        return error_response("INTERNAL_ERROR", result.get("error") or "AI request failed", 500)

    response = jsonify({
        "success": True,
        "data": result.get("data"),
        "usage": result.get("usage"),
        "model": result["model"],
    })
    response.headers.update(usage_tracker.get_rate_limit_headers(current_user.id, plan_type))
    return response


@ai_bp.route("/analyze-job", methods=["POST"])
@jwt_required()
@limiter.limit(ai_rate_limit)
def analyze_job():
    payload = JobAnalysisRequest.model_validate(_json_body())
    if not get_openai_client().is_configured:
        return _unavailable()

    plan_type = _plan_type()
    result = ai_service.analyze_job_description(payload.job_description, current_user.id, plan_type)
    return _respond(result, plan_type)


@ai_bp.route("/generate-bullets", methods=["POST"])
@jwt_required()
@limiter.limit(ai_rate_limit)
def generate_bullets():
    payload = BulletPointRequest.model_validate(_json_body())
    if not get_openai_client().is_configured:
        return _unavailable()

    plan_type = _plan_type()
    result = ai_service.generate_bullet_points(payload, current_user.id, plan_type)
    return _respond(result, plan_type)


@ai_bp.route("/generate-summary", methods=["POST"])
@jwt_required()
@limiter.limit(ai_rate_limit)
def generate_summary():
    payload = SummaryRequest.model_validate(_json_body())
    if not get_openai_client().is_configured:
        return _unavailable()

    plan_type = _plan_type()
    result = ai_service.generate_summary(payload, current_user.id, plan_type)
    return _respond(result, plan_type)


@ai_bp.route("/analyze-ats", methods=["POST"])
@jwt_required()
@limiter.limit(ai_rate_limit)
def analyze_ats():
    payload = ATSAnalysisRequest.model_validate(_json_body())
    if not get_openai_client().is_configured:
        return _unavailable()

    cv_content = payload.cv_content
    if not cv_content:
        cv = databases.find_cv_by_id(payload.cv_id, current_user.id)
        cv_content = convert_cv_to_plain_text(cv.data or {})

    plan_type = _plan_type()
    result = ai_service.analyze_ats(
        cv_content,
        current_user.id,
        plan_type,
        job_description=payload.job_description,
        target_keywords=payload.target_keywords,
        industry=payload.industry,
    )
    return _respond(result, plan_type)


@ai_bp.route("/premium/cover-letter", methods=["POST"])
@premium_required
@limiter.limit(ai_rate_limit)
def cover_letter():
    payload = CoverLetterRequest.model_validate(_json_body())
    if not get_openai_client().is_configured:
        return _unavailable()

    if payload.cv_data is not None:
        cv_data = payload.cv_data
    elif payload.cv_id:
        cv_data = databases.find_cv_by_id(payload.cv_id, current_user.id).data
    else:
        return error_response("VALIDATION_ERROR", "Either cvData or cvId is required", 400)

    plan_type = _plan_type()
    result = ai_service.generate_cover_letter(payload, cv_data, current_user.id, plan_type)
    return _respond(result, plan_type)


@ai_bp.route("/premium/industry-analysis", methods=["POST"])
@premium_required
@limiter.limit(ai_rate_limit)
def industry_analysis():
    payload = IndustryAnalysisRequest.model_validate(_json_body())
    if not get_openai_client().is_configured:
        return _unavailable()

    plan_type = _plan_type()
    result = ai_service.analyze_industry(payload, current_user.id, plan_type)
    return _respond(result, plan_type)


@ai_bp.route("/parse-cv", methods=["POST"])
@jwt_required()
@limiter.limit(ai_rate_limit)
def parse_cv():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return error_response("VALIDATION_ERROR", "No file provided", 400)

    try:
        text = cv_parser.extract_text(upload.read(), upload.filename, upload.mimetype)
    except cv_parser.UnsupportedFileError as e:
        return error_response("UNSUPPORTED_MEDIA_TYPE", str(e), 415)
    except cv_parser.CVParseError as e:
        return error_response("PARSE_ERROR", str(e), 400)

    logger.info(f"📥 CV file {upload.filename!r} parsed for user {current_user.id}")
    return jsonify({
        "data": cv_parser.parse_cv_text(text),
        "extractedText": cv_parser.text_preview(text),
        "message": "CV processed successfully",
    }), 200


@ai_bp.route("/parse-cv", methods=["GET"])
def parse_cv_status():
    return jsonify({
        "message": "Parse CV endpoint is working",
        "timestamp": now_iso(),
        "openaiConfigured": get_openai_client().is_configured,
    }), 200


@ai_bp.route("/usage", methods=["GET"])
@jwt_required()
def usage():
    query = UsageQuery.model_validate(request.args.to_dict())
    plan_type = _plan_type()
    return jsonify({
        "planType": plan_type,
        "usage": usage_tracker.get_current_usage(current_user.id, plan_type),
        "stats": usage_tracker.get_usage_stats(current_user.id, query.range),
        "warnings": usage_tracker.check_limit_warnings(current_user.id, plan_type),
    }), 200


@ai_bp.route("/health", methods=["GET"])
def health():
    if not get_openai_client().is_configured:
        return jsonify({
            "status": "unhealthy",
            "error": "AI service is not configured",
            "timestamp": now_iso(),
        }), 503

    status = ai_service.health_check()
    status["timestamp"] = now_iso()
    return jsonify(status), 200 if status["status"] == "healthy" else 503
