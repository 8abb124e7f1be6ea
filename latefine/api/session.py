from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from latefine.session import GameSession

session_bp = Blueprint('session', __name__)


@session_bp.route('', methods=['GET', 'POST'])
@login_required
def start_session():
    """Landing view for the signed-in account.

    An ``invite`` query parameter (or JSON field) is accepted before anything
    else; the client should drop it from its URL once ``invite_consumed`` is
    returned so a reload does not replay it.
    """
    data = request.get_json(silent=True) or {}
    token = request.args.get('invite') or data.get('invite')
    session = GameSession(current_user, invite_token=token)
    try:
        session.start()
        payload = session.snapshot()
    finally:
        session.close()
    payload['invite_consumed'] = bool(token)
    return jsonify(payload)
