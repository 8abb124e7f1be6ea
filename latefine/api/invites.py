from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from latefine.services import invites as invite_service

invites = Blueprint('invites', __name__)


@invites.route('/pending', methods=['GET'])
@login_required
def list_pending():
    pending = invite_service.list_pending_invites_for_account(current_user)
    return jsonify([i.to_dict(include_game=True) for i in pending])


@invites.route('/accept', methods=['POST'])
@login_required
def accept_invite():
    data = request.get_json(silent=True) or {}
    # Expected failures are a normal result, not an HTTP error
    return jsonify(invite_service.accept_invite(current_user, data.get('invite_code')))


@invites.route('/<string:invite_id>/decline', methods=['POST'])
@login_required
def decline_invite(invite_id):
    invite = invite_service.decline_invite(current_user, invite_id)
    return jsonify(invite.to_dict())
