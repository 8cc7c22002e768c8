import logging

from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_current_user, verify_jwt_in_request

from cvbuilder.extensions import ai_rate_limit, limiter
from cvbuilder.schemas.ai import ChatbotRequest
from cvbuilder.services import chatbot
from cvbuilder.services.cv_transforms import now_iso
from cvbuilder.services.openai_service import get_openai_client
from cvbuilder.utils.responses import ai_rate_limited_response, error_response

logger = logging.getLogger(__name__)

chatbot_bp = Blueprint("chatbot", __name__, url_prefix="/api/chatbot")


@chatbot_bp.route("", methods=["POST"])
@limiter.limit(ai_rate_limit)
def chat():
    payload = ChatbotRequest.model_validate(request.get_json(silent=True) or {})
    if not get_openai_client().is_configured:
        return error_response("AI_UNAVAILABLE", "AI service is not configured", 503)

    # signing in is optional; signed-in users get their usage recorded
    verify_jwt_in_request(optional=True)
    user = get_current_user()

    result = chatbot.answer(payload.message, payload.conversation_history, user.id if user else None)
    if not result["success"]:
        if result.get("code") == "RATE_LIMIT":
            return ai_rate_limited_response(result)
        return error_response("INTERNAL_ERROR", "Failed to generate response", 500)

    return jsonify({
        "response": result["data"],
        "usage": result.get("usage"),
        "timestamp": now_iso(),
    }), 200


@chatbot_bp.route("", methods=["GET"])
def health():
    return jsonify({
        "status": "ok",
        "service": f"{chatbot.SITE_KNOWLEDGE['general']['name']} Chatbot",
        "timestamp": now_iso(),
        "features": ["ai-powered", "context-aware"],
    }), 200
