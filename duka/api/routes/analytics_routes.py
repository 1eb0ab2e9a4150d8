# duka/api/routes/analytics_routes.py
from flask import Blueprint, jsonify, request

from duka.domain.records import SignupRecord, VisitRecord, new_id
from duka.errors import ValidationError
from duka.extensions import get_store

analytics_bp = Blueprint("analytics_bp", __name__, url_prefix="/api")


@analytics_bp.post("/signups")
def create_signup():
    data = request.get_json(force=True, silent=True) or {}
    full_name = str(data.get("fullName") or "").strip()
    phone = str(data.get("phone") or "").strip()
    if not (full_name and phone):
        raise ValidationError("Jaza jina na simu.")

    signup = SignupRecord(
        id=new_id(),
        full_name=full_name,
        phone=phone,
        email=str(data.get("email") or "").strip(),
    )
    get_store().insert_signup(signup)
    return jsonify({"ok": True, "id": signup.id}), 201


@analytics_bp.post("/visits")
def record_visit():
    data = request.get_json(force=True, silent=True) or {}
    visit = VisitRecord(
        id=new_id(),
        path=str(data.get("path") or "/").strip()[:512] or "/",
        referrer=str(data.get("referrer") or "").strip()[:512],
        user_agent=str(data.get("userAgent") or request.headers.get("User-Agent") or "").strip()[:512],
    )
    get_store().insert_visit(visit)
    return jsonify({"ok": True}), 201
