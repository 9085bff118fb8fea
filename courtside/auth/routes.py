"""Session endpoints backed by Firebase Authentication."""

from firebase_admin import auth, firestore
from flask import current_app, jsonify, request, session
from flask_wtf.csrf import generate_csrf

from courtside.core.constants import USERS_COLLECTION

from . import bp


@bp.route("/session_login", methods=["POST"])
def session_login():
    """
    Called by the client after a successful Firebase login.
    It receives the ID token, verifies it, and creates a server-side session.
    """
    id_token = (request.get_json(silent=True) or {}).get("idToken")
    if not id_token:
        return jsonify({"status": "error", "message": "idToken is required."}), 400
    try:
        decoded_token = auth.verify_id_token(id_token)
    except (ValueError, auth.InvalidIdTokenError) as e:
        current_app.logger.warning(f"Rejected ID token: {e}")
        return jsonify({"status": "error", "message": "Invalid token."}), 401

    uid = decoded_token["uid"]
    db = firestore.client()
    user_doc = db.collection(USERS_COLLECTION).document(uid).get()
    if not user_doc.exists:
        return jsonify({"status": "error", "message": "User not found in Firestore."}), 404

    user_info = user_doc.to_dict() or {}
    session["user_id"] = uid
    session["is_admin"] = bool(user_info.get("isAdmin", False))
    return jsonify({"status": "success", "isAdmin": session["is_admin"]})


@bp.route("/logout", methods=["POST"])
def logout():
    """Clear the server-side session."""
    session.clear()
    return jsonify({"status": "success"})


@bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    """Hand API clients a token for the X-CSRFToken header."""
    return jsonify({"csrfToken": generate_csrf()})
