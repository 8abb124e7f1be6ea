"""Change notifications keyed by game id.

Every committed mutation is published to an in-process ``ChangeBus`` and
relayed to the Socket.IO room ``game:<id>`` on ``/ws``. Delivery is best
effort; subscribers respond to any notification with a full refetch, so a
lost or duplicated message does no harm.
"""

import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import current_app, has_app_context

from latefine import socketio

ENTITY_GAMES = 'games'
ENTITY_PLAYERS = 'players'
ENTITY_EVENTS = 'events'
ENTITY_INVITES = 'invites'
ENTITY_MEMBERS = 'members'

ACTION_INSERT = 'insert'
ACTION_UPDATE = 'update'
ACTION_DELETE = 'delete'

Callback = Callable[[Dict[str, Any]], None]


def room_for(game_id: str) -> str:
    return f"game:{game_id}"


class Subscription:
    """Handle returned by ``ChangeBus.subscribe``; ``unsubscribe`` is idempotent."""

    def __init__(self, bus: 'ChangeBus', keys: List[Tuple[str, str]], callback: Callback):
        self._bus = bus
        self._keys = keys
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._remove(self._keys, self._callback)


class ChangeBus:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[Tuple[str, str], List[Callback]] = defaultdict(list)

    def subscribe(self, entity_types, game_id: str, callback: Callback) -> Subscription:
        if isinstance(entity_types, str):
            entity_types = [entity_types]
        keys = [(entity, str(game_id)) for entity in entity_types]
        with self._lock:
            for key in keys:
                self._subscribers[key].append(callback)
        return Subscription(self, keys, callback)

    def _remove(self, keys, callback) -> None:
        with self._lock:
            for key in keys:
                callbacks = self._subscribers.get(key)
                if not callbacks:
                    continue
                try:
                    callbacks.remove(callback)
                except ValueError:
                    pass
                if not callbacks:
                    self._subscribers.pop(key, None)

    def subscriber_count(self, game_id: Optional[str] = None) -> int:
        with self._lock:
            return sum(len(cbs) for (entity, gid), cbs in self._subscribers.items()
                       if game_id is None or gid == str(game_id))

    def publish(self, entity_type: str, action: str, game_id: str, payload: Optional[dict] = None) -> None:
        change = {
            'entity': entity_type,
            'type': action,
            'game_id': str(game_id),
            'payload': payload,
        }
        with self._lock:
            callbacks = list(self._subscribers.get((entity_type, str(game_id)), ()))
        for callback in callbacks:
            callback(change)
        socketio.emit('change', change, to=room_for(game_id), namespace='/ws')


bus = ChangeBus()


def publish_change(entity_type: str, action: str, game_id: str, payload: Optional[dict] = None) -> None:
    if has_app_context():
        current_app.logger.info(f"[change] game={game_id} entity={entity_type} type={action}")
    bus.publish(entity_type, action, game_id, payload)
