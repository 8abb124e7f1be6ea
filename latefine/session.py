"""Per-account session orchestration.

``GameSession`` walks the view states ``loading -> game_list | game_detail``.
While a game is selected it holds exactly one change subscription for that
game; any notification triggers a full refetch and recompute. Switching
games or going back releases the subscription before state is dropped.
"""

from datetime import datetime
from typing import Callable, Optional

from flask import current_app

from latefine.errors import AuthorizationError
from latefine.services import invites as invite_service
from latefine.services import ledger
from latefine.services.access import require_account, user_role
from latefine.services.notifications import (
    ACTION_DELETE, ENTITY_EVENTS, ENTITY_GAMES, ENTITY_MEMBERS, ENTITY_PLAYERS, bus as default_bus,
)
from latefine.services.stats import summarize

LOADING = 'loading'
GAME_LIST = 'game_list'
GAME_DETAIL = 'game_detail'

DETAIL_STREAMS = (ENTITY_PLAYERS, ENTITY_EVENTS, ENTITY_GAMES, ENTITY_MEMBERS)


class GameSession:
    def __init__(self, account, bus=None, invite_token: Optional[str] = None,
                 today: Optional[Callable] = None):
        self.account = require_account(account)
        self.bus = bus or default_bus
        self.invite_token = (invite_token or '').strip() or None
        self._today = today
        self.state = LOADING
        self.games = []
        self.pending_invites = []
        self.show_invites = False
        self.last_invite_result = None
        self.game = None
        self.players = []
        self.events = []
        self.stats = None
        self.refresh_count = 0
        self._subscription = None

    # ---- lifecycle ----

    def start(self):
        """Resolve the landing view.

        A pending invite token is used once and then forgotten, whatever the
        outcome, so reloading the session never accepts it again.
        """
        token, self.invite_token = self.invite_token, None
        if token:
            result = invite_service.accept_invite(self.account, token)
            self.last_invite_result = result
            if result['success']:
                self.games = ledger.get_user_games(self.account)
                self.select_game(result['game_id'])
                return self
            current_app.logger.warning(
                f"[session] user={self.account.id} invite token rejected: {result['message']}")
        self._load_list()
        self.show_invites = bool(self.pending_invites)
        return self

    def close(self):
        self._teardown()
        self.state = LOADING

    # ---- list view ----

    def _load_list(self):
        self.games = ledger.get_user_games(self.account)
        self.pending_invites = invite_service.list_pending_invites_for_account(self.account)
        self.state = GAME_LIST

    def dismiss_invites(self):
        self.show_invites = False

    def accept_pending_invite(self, invite_code):
        result = invite_service.accept_invite(self.account, invite_code)
        self.last_invite_result = result
        if result['success']:
            self.games = ledger.get_user_games(self.account)
            self.select_game(result['game_id'])
        else:
            self.pending_invites = invite_service.list_pending_invites_for_account(self.account)
        return result

    def decline_pending_invite(self, invite_id):
        invite_service.decline_invite(self.account, invite_id)
        self.pending_invites = invite_service.list_pending_invites_for_account(self.account)
        self.show_invites = bool(self.pending_invites) and self.show_invites

    def create_game(self, name, **settings):
        game = ledger.create_game(self.account, name, **settings)
        self.games = ledger.get_user_games(self.account)
        self.select_game(game.id)
        return game

    # ---- detail view ----

    def select_game(self, game_id):
        # A denied fetch leaves the current view untouched
        data = ledger.get_game_data(self.account, game_id)
        self._teardown()
        self._apply(data)
        gid = self.game.id
        self._subscription = self.bus.subscribe(DETAIL_STREAMS, gid, self._on_change)
        self.state = GAME_DETAIL
        current_app.logger.info(f"[session] user={self.account.id} selected game={gid}")
        return self

    def refresh(self):
        if self.game is None:
            return self
        self._apply(ledger.get_game_data(self.account, self.game.id))
        return self

    def back_to_games(self):
        self._teardown()
        self._load_list()
        return self

    def _teardown(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self.game = None
        self.players = []
        self.events = []
        self.stats = None

    def _apply(self, data):
        self.game = data['game']
        self.players = data['players']
        self.events = data['events']
        self.stats = summarize(self.players, self.events, self.today(), ledger.ledger_timezone())
        self.refresh_count += 1

    def today(self):
        if self._today is not None:
            return self._today()
        return datetime.now(ledger.ledger_timezone()).date()

    def _on_change(self, change):
        if self.game is None or change.get('game_id') != self.game.id:
            return
        if change.get('entity') == ENTITY_GAMES and change.get('type') == ACTION_DELETE:
            self.back_to_games()
            return
        try:
            self.refresh()
        except AuthorizationError:
            # Access revoked while viewing
            self.back_to_games()

    # ---- detail actions ----

    def _require_game(self):
        if self.game is None:
            raise AuthorizationError('No game selected')
        return self.game.id

    def add_player(self, name):
        player = ledger.add_player(self.account, self._require_game(), name)
        self.refresh()
        return player

    def remove_player(self, player_id):
        ledger.delete_player(self.account, self._require_game(), player_id)
        self.refresh()

    def mark_late(self, player_id, reason=None, amount=None):
        event = ledger.add_event(self.account, self._require_game(), player_id, reason, amount)
        self.refresh()
        return event

    def remove_event(self, event_id):
        ledger.delete_event(self.account, self._require_game(), event_id)
        self.refresh()

    def update_settings(self, **updates):
        ledger.update_game(self.account, self._require_game(), updates)
        self.refresh()

    def reset_season(self):
        season = ledger.reset_season(self.account, self._require_game())
        self.refresh()
        return season

    def leave_game(self):
        invite_service.leave_game(self.account, self._require_game())
        return self.back_to_games()

    def delete_game(self):
        ledger.delete_game(self.account, self._require_game())
        return self.back_to_games()

    # ---- output ----

    def snapshot(self):
        data = {
            'state': self.state,
            'games': self.games,
            'pending_invites': [i.to_dict(include_game=True) for i in self.pending_invites],
            'show_invites': self.show_invites,
            'invite_result': self.last_invite_result,
        }
        if self.game is not None:
            data['game'] = self.game.to_dict(user_role=user_role(self.account.id, self.game))
            data['players'] = [p.to_dict() for p in self.players]
            data['events'] = [e.to_dict() for e in self.events]
            data['stats'] = self.stats
        return data
