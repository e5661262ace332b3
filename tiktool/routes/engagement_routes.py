# tiktool/routes/engagement_routes.py
from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ..services import engagement
from .guards import current_user, safe_int

engage_bp = Blueprint("engage", __name__)


# ------------------------------
# Follow-to-earn
# ------------------------------
@engage_bp.route("/profiles", methods=["GET"])
@jwt_required()
def list_profiles():
    user = current_user()
    limit = safe_int(request.args.get("limit"), 20)
    if limit <= 0 or limit > 100:
        limit = 20
    return jsonify({"profiles": engagement.suggested_profiles(user.id, limit)}), 200


@engage_bp.route("/profiles", methods=["POST"])
@jwt_required()
def register_profile():
    user = current_user()
    data = request.get_json(silent=True) or {}
    result = engagement.register_profile(user.id, data.get("username"))
    return jsonify(result), (200 if result["already_done"] else 201)


@engage_bp.route("/profiles/<int:profile_id>/follow", methods=["POST"])
@jwt_required()
def follow_profile(profile_id):
    user = current_user()
    return jsonify(engagement.follow_profile(user.id, profile_id)), 200


# ------------------------------
# Likes & views
# ------------------------------
@engage_bp.route("/videos", methods=["GET"])
@jwt_required()
def list_videos():
    current_user()
    return jsonify(engagement.list_videos()), 200


@engage_bp.route("/videos", methods=["POST"])
@jwt_required()
def submit_video():
    user = current_user()
    data = request.get_json(silent=True) or {}
    result = engagement.submit_video(user.id, data.get("url"))
    return jsonify(result), (200 if result["already_done"] else 201)


@engage_bp.route("/videos/<int:video_id>/<kind>", methods=["POST"])
@jwt_required()
def interact(video_id, kind):
    user = current_user()
    return jsonify(engagement.interact_with_video(user.id, video_id, kind)), 200


# ------------------------------
# Content tools
# ------------------------------
@engage_bp.route("/generate", methods=["POST"])
@jwt_required()
def generate():
    """
    JSON body:
      { "kind": "hashtags", "topic": "dance" }
      { "kind": "ideas", "topic": "tech" }
      { "kind": "analysis", "followers": 1200, "likes": 300, "views": 5000 }
    """
    user = current_user()
    data = request.get_json(silent=True) or {}
    result = engagement.generate_content(
        user.id,
        (data.get("kind") or "").strip(),
        topic=(data.get("topic") or "").strip() or None,
        profile=data,
    )
    return jsonify(result), 200
