from flask import current_app, request
from flask_login import current_user
from flask_socketio import emit, join_room, leave_room
from typing import Dict, Set, Tuple

from latefine import socketio
from latefine.services.access import has_access
from latefine.services.notifications import room_for

# sid -> (account id, namespace, game ids whose rooms that socket joined)
_sid_rooms: Dict[str, Tuple[int, str, Set[str]]] = {}


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    _sid_rooms.pop(_get_sid(), None)


def handle_subscribe_game(data):
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    if not current_user.is_authenticated:
        emit('error', {'message': 'You must sign in'})
        return
    if not has_access(current_user.id, game_id):
        current_app.logger.warning(f"[ws-denied] game={game_id} user={current_user.id}")
        emit('error', {'message': 'Access denied'})
        return
    room = room_for(game_id)
    join_room(room)
    sid = _get_sid()
    if sid not in _sid_rooms:
        _sid_rooms[sid] = (current_user.id, request.namespace, set())
    _sid_rooms[sid][2].add(str(game_id))
    emit('subscribed', {'room': room})


def handle_unsubscribe_game(data):
    """Leave a game room; repeating it is harmless."""
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = room_for(game_id)
    leave_room(room)
    entry = _sid_rooms.get(_get_sid())
    if entry:
        entry[2].discard(str(game_id))
    emit('unsubscribed', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def evict_account(account_id, game_id) -> int:
    """Pull every socket of ``account_id`` out of the game's room.

    Called when a membership ends, so the room stops relaying that game's
    changes to someone who can no longer read it.
    """
    gid = str(game_id)
    room = room_for(gid)
    evicted = 0
    for sid, (user_id, namespace, games) in list(_sid_rooms.items()):
        if user_id != account_id or gid not in games:
            continue
        socketio.emit('unsubscribed', {'room': room, 'reason': 'access revoked'}, to=sid, namespace=namespace)
        socketio.server.leave_room(sid, room, namespace=namespace)
        games.discard(gid)
        evicted += 1
    if evicted:
        current_app.logger.info(f"[ws-evict] game={gid} user={account_id} sockets={evicted}")
    return evicted


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = [
        ('connect', handle_connect),
        ('disconnect', handle_disconnect),
        ('subscribe_game', handle_subscribe_game),
        ('unsubscribe_game', handle_unsubscribe_game),
        ('ping', handle_ping),
    ]
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for name, handler in handlers:
            socketio.on_event(name, handler, namespace=namespace)
