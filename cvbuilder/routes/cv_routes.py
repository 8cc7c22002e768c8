import logging

from flask import Blueprint, Response, jsonify, request
from flask_jwt_extended import current_user, jwt_required

import cvbuilder.databases as databases
from cvbuilder.extensions import api_rate_limit, limiter
from cvbuilder.schemas.cv import (
    CreateCVRequest,
    CVListQuery,
    DuplicateCVRequest,
    UpdateCVRequest,
)
from cvbuilder.services import cv_sharing
from cvbuilder.services.cv_duplication import duplicate_cv_data
from cvbuilder.services.cv_transforms import (
    CVValidationError,
    calculate_cv_completeness,
    convert_cv_to_plain_text,
    create_default_cv_data,
    merge_cv_data,
    transform_cv_data_for_storage,
    transform_cv_record_to_response,
    validate_and_sanitize_cv_data,
)
from cvbuilder.services.templates import list_templates
from cvbuilder.utils.responses import error_response

logger = logging.getLogger(__name__)

cv_bp = Blueprint("cvs", __name__, url_prefix="/api/cvs")


def _json_body():
    return request.get_json(silent=True) or {}


def _share_summary(cv):
    return {
        "id": cv.id,
        "name": cv.name,
        "isPublic": cv.is_public,
        "shareToken": cv.share_token,
    }


@cv_bp.route("", methods=["GET"])
@jwt_required()
@limiter.limit(api_rate_limit)
def list_cvs():
    query = CVListQuery.model_validate(request.args.to_dict())

    cvs, total = databases.find_user_cvs(
        current_user.id,
        page=query.page,
        limit=query.limit,
        search=query.search,
        template=query.template,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
    )

    items = []
    for cv in cvs:
        item = databases.cv_summary_to_dict(cv)
        try:
            item["completeness"] = calculate_cv_completeness(validate_and_sanitize_cv_data(cv.data))
        except CVValidationError:
            # blank or legacy documents have no score yet
            pass
        items.append(item)

    return jsonify({
        "cvs": items,
        "total": total,
        "page": query.page,
        "limit": query.limit,
    }), 200


@cv_bp.route("", methods=["POST"])
@jwt_required()
@limiter.limit(api_rate_limit)
def create_cv():
    payload = CreateCVRequest.model_validate(_json_body())
    template = payload.template or "modern"

    if payload.data is not None:
        cv_data = validate_and_sanitize_cv_data(
            payload.data.model_dump(by_alias=True, exclude_none=True)
        )
    else:
        cv_data = create_default_cv_data(payload.name, template)

    cv = databases.create_cv(
        current_user.id,
        payload.name,
        transform_cv_data_for_storage(cv_data),
        description=payload.description,
        template=template,
    )
    logger.info(f"📝 CV {cv.id} created for user {current_user.id}")
    return jsonify({"cv": transform_cv_record_to_response(cv)}), 201


@cv_bp.route("/templates", methods=["GET"])
def get_templates():
    return jsonify({"templates": list_templates()}), 200


@cv_bp.route("/shared/<token>", methods=["GET"])
@limiter.limit(api_rate_limit)
def get_shared_cv(token):
    try:
        shared = cv_sharing.get_shared_cv(token)
    except cv_sharing.InvalidShareTokenError:
        return error_response("INVALID_TOKEN", "Invalid share token", 400)
    except databases.NotFoundError:
        return error_response("NOT_FOUND", "Shared CV not found or no longer available", 404)
    return jsonify({"cv": shared}), 200


@cv_bp.route("/<cv_id>", methods=["GET"])
@jwt_required()
@limiter.limit(api_rate_limit)
def get_cv(cv_id):
    cv = databases.find_cv_by_id(cv_id, current_user.id)
    return jsonify({"cv": transform_cv_record_to_response(cv)}), 200


@cv_bp.route("/<cv_id>", methods=["PUT"])
@jwt_required()
@limiter.limit(api_rate_limit)
def update_cv(cv_id):
    payload = UpdateCVRequest.model_validate(_json_body())
    existing = databases.find_cv_by_id(cv_id, current_user.id)

    changes = {}
    if payload.name is not None:
        changes["name"] = payload.name
    if payload.description is not None:
        changes["description"] = payload.description
    if payload.template is not None:
        changes["template"] = payload.template
    if payload.is_public is not None:
        changes["is_public"] = payload.is_public
        if not payload.is_public:
            # a revoked link must not come back when the CV is made public again
            changes["share_token"] = None
    if payload.data is not None:
        updates = payload.data.model_dump(by_alias=True, exclude_unset=True)
        changes["data"] = merge_cv_data(existing.data or {}, updates)

    cv = databases.update_cv(cv_id, current_user.id, **changes)
    return jsonify({"cv": transform_cv_record_to_response(cv)}), 200


@cv_bp.route("/<cv_id>", methods=["DELETE"])
@jwt_required()
@limiter.limit(api_rate_limit)
def delete_cv(cv_id):
    databases.delete_cv(cv_id, current_user.id)
    logger.info(f"🗑️ CV {cv_id} deleted by user {current_user.id}")
    return jsonify({"message": "CV deleted successfully"}), 200


@cv_bp.route("/<cv_id>/duplicate", methods=["POST"])
@jwt_required()
@limiter.limit(api_rate_limit)
def duplicate_cv(cv_id):
    payload = DuplicateCVRequest.model_validate(_json_body())
    original = databases.find_cv_by_id(cv_id, current_user.id)

    data = duplicate_cv_data(original.data or {}, payload.name)
    duplicate = databases.duplicate_cv(
        cv_id,
        current_user.id,
        payload.name,
        description=payload.description,
        data=data,
    )
    logger.info(f"📄 CV {cv_id} duplicated as {duplicate.id}")
    return jsonify({"cv": transform_cv_record_to_response(duplicate)}), 201


@cv_bp.route("/<cv_id>/share", methods=["POST"])
@jwt_required()
@limiter.limit(api_rate_limit)
def share_cv(cv_id):
    cv, share_url = cv_sharing.issue_share_token(cv_id, current_user.id)
    return jsonify({
        "shareToken": cv.share_token,
        "shareUrl": share_url,
        "cv": _share_summary(cv),
        "message": "Share link generated successfully",
    }), 200


@cv_bp.route("/<cv_id>/share", methods=["DELETE"])
@jwt_required()
@limiter.limit(api_rate_limit)
def unshare_cv(cv_id):
    cv = cv_sharing.revoke_share_token(cv_id, current_user.id)
    return jsonify({
        "cv": _share_summary(cv),
        "message": "Share link removed successfully",
    }), 200


@cv_bp.route("/<cv_id>/export/text", methods=["GET"])
@jwt_required()
@limiter.limit(api_rate_limit)
def export_cv_text(cv_id):
    cv = databases.find_cv_by_id(cv_id, current_user.id)
    text = convert_cv_to_plain_text(cv.data or {})
    filename = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in cv.name) or "cv"
    return Response(
        text,
        mimetype="text/plain",
        headers={"Content-Disposition": f'attachment; filename="{filename}.txt"'},
    )
