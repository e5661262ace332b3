# tiktool/routes/challenge_routes.py
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from ..services import badges, progression
from .guards import current_user

challenges_bp = Blueprint("challenges", __name__)


@challenges_bp.route("/today", methods=["GET"])
@jwt_required()
def today_challenges():
    user = current_user()
    return jsonify(progression.daily_overview(user.id)), 200


@challenges_bp.route("/<int:challenge_id>/step", methods=["POST"])
@jwt_required()
def challenge_step(challenge_id):
    """
    Count one step of a challenge. When it completes, the response carries
    the points, streak bonus and badges that came with it:
    {
      "challenge_id": 3,
      "progress": 1, "goal": 1, "completed": true, "just_completed": true,
      "points_awarded": 20, "bonus_awarded": 0, "badges_awarded": [],
      "current_streak": 1, "points_today": 20, "daily_limit_reached": false,
      "balance": 30
    }
    """
    user = current_user()
    return jsonify(progression.complete_step(user.id, challenge_id)), 200


@challenges_bp.route("/badges", methods=["GET"])
@jwt_required()
def my_badges():
    user = current_user()
    return jsonify({"badges": badges.list_badges(user.id)}), 200
