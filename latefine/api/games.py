from datetime import datetime

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from latefine.models import ROLE_OWNER
from latefine.services import invites as invite_service
from latefine.services import ledger
from latefine.services.access import user_role
from latefine.services.stats import summarize

games = Blueprint('games', __name__)


def _json():
    return request.get_json(silent=True) or {}


def _game_payload(game, players, events):
    tz = ledger.ledger_timezone()
    return {
        'game': game.to_dict(user_role=user_role(current_user.id, game)),
        'players': [p.to_dict() for p in players],
        'events': [e.to_dict() for e in events],
        'stats': summarize(players, events, datetime.now(tz).date(), tz),
    }


# ---- Games ----

@games.route('', methods=['GET'])
@login_required
def list_games():
    return jsonify(ledger.get_user_games(current_user))


@games.route('', methods=['POST'])
@login_required
def create_game():
    data = _json()
    game = ledger.create_game(
        current_user,
        data.get('name'),
        season=data.get('season'),
        fine_amount=data.get('fine_amount'),
        currency=data.get('currency'),
    )
    return jsonify(game.to_dict(user_role=ROLE_OWNER)), 201


@games.route('/<string:game_id>', methods=['GET'])
@login_required
def get_game(game_id):
    data = ledger.get_game_data(current_user, game_id)
    return jsonify(_game_payload(data['game'], data['players'], data['events']))


@games.route('/<string:game_id>', methods=['PATCH'])
@login_required
def update_game(game_id):
    game = ledger.update_game(current_user, game_id, _json())
    return jsonify(game.to_dict(user_role=user_role(current_user.id, game)))


@games.route('/<string:game_id>', methods=['DELETE'])
@login_required
def delete_game(game_id):
    ledger.delete_game(current_user, game_id)
    return jsonify({'success': True})


@games.route('/<string:game_id>/stats', methods=['GET'])
@login_required
def get_stats(game_id):
    data = ledger.get_game_data(current_user, game_id)
    return jsonify(_game_payload(data['game'], data['players'], data['events'])['stats'])


@games.route('/<string:game_id>/reset-season', methods=['POST'])
@login_required
def reset_season(game_id):
    season = ledger.reset_season(current_user, game_id)
    return jsonify({'season': season})


# ---- Players ----

@games.route('/<string:game_id>/players', methods=['GET'])
@login_required
def list_players(game_id):
    return jsonify([p.to_dict() for p in ledger.get_players(current_user, game_id)])


@games.route('/<string:game_id>/players', methods=['POST'])
@login_required
def add_player(game_id):
    player = ledger.add_player(current_user, game_id, _json().get('name'))
    return jsonify(player.to_dict()), 201


@games.route('/<string:game_id>/players/<string:player_id>', methods=['PATCH'])
@login_required
def rename_player(game_id, player_id):
    player = ledger.rename_player(current_user, game_id, player_id, _json().get('name'))
    return jsonify(player.to_dict())


@games.route('/<string:game_id>/players/<string:player_id>', methods=['DELETE'])
@login_required
def delete_player(game_id, player_id):
    ledger.delete_player(current_user, game_id, player_id)
    return jsonify({'success': True})


# ---- Events ----

@games.route('/<string:game_id>/events', methods=['GET'])
@login_required
def list_events(game_id):
    return jsonify([e.to_dict() for e in ledger.get_events(current_user, game_id)])


@games.route('/<string:game_id>/events', methods=['POST'])
@login_required
def add_event(game_id):
    data = _json()
    event = ledger.add_event(current_user, game_id, data.get('player_id'), data.get('reason'), data.get('amount'))
    return jsonify(event.to_dict()), 201


@games.route('/<string:game_id>/events', methods=['DELETE'])
@login_required
def clear_events(game_id):
    removed = ledger.clear_all_events(current_user, game_id)
    return jsonify({'removed': removed})


@games.route('/<string:game_id>/events/<string:event_id>', methods=['DELETE'])
@login_required
def delete_event(game_id, event_id):
    ledger.delete_event(current_user, game_id, event_id)
    return jsonify({'success': True})


# ---- Invites & members ----

@games.route('/<string:game_id>/invites', methods=['GET'])
@login_required
def list_invites(game_id):
    return jsonify([i.to_dict() for i in invite_service.list_invites(current_user, game_id)])


@games.route('/<string:game_id>/invites', methods=['POST'])
@login_required
def create_invite(game_id):
    data = _json()
    if data.get('link'):
        invite = invite_service.create_link_invite(current_user, game_id)
    else:
        invite = invite_service.create_invite(current_user, game_id, data.get('email'))
    payload = invite.to_dict()
    payload['link'] = invite_service.invite_link(invite)
    return jsonify(payload), 201


@games.route('/<string:game_id>/invites/<string:invite_id>', methods=['DELETE'])
@login_required
def cancel_invite(game_id, invite_id):
    invite_service.cancel_invite(current_user, invite_id, game_id=game_id)
    return jsonify({'success': True})


@games.route('/<string:game_id>/members', methods=['GET'])
@login_required
def list_members(game_id):
    return jsonify(invite_service.list_members(current_user, game_id))


@games.route('/<string:game_id>/members/<int:user_id>', methods=['DELETE'])
@login_required
def remove_member(game_id, user_id):
    invite_service.remove_member(current_user, game_id, user_id)
    return jsonify({'success': True})


@games.route('/<string:game_id>/leave', methods=['POST'])
@login_required
def leave_game(game_id):
    invite_service.leave_game(current_user, game_id)
    return jsonify({'success': True})
