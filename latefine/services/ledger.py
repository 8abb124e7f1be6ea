"""Games, players and the event log.

Each operation checks access for the acting account, commits, logs, and
then publishes a change notification for the affected game.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from flask import current_app

from latefine import db
from latefine.errors import NotFoundError, ValidationError
from latefine.models import ROLE_OWNER, Event, Game, Invite, Membership, Player, utcnow
from latefine.services.access import require_access, require_account, require_owner
from latefine.services.notifications import (
    ACTION_DELETE, ACTION_INSERT, ACTION_UPDATE,
    ENTITY_EVENTS, ENTITY_GAMES, ENTITY_PLAYERS,
    publish_change,
)

EDITABLE_GAME_FIELDS = ('name', 'season', 'fine_amount', 'currency')


def parse_amount(value, default=None) -> Decimal:
    """Coerce a fine amount, clamping negatives to zero."""
    if value is None or value == '':
        if default is None:
            raise ValidationError('Amount is required')
        value = default
    if isinstance(value, bool):
        raise ValidationError('Amount must be a number')
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError('Amount must be a number')
    if not amount.is_finite():
        raise ValidationError('Amount must be a number')
    return max(Decimal('0'), amount).quantize(Decimal('0.01'))


def next_season(season: Optional[str]) -> str:
    """``S3`` -> ``S4``; labels without digits count as season 1."""
    digits = re.sub(r'\D', '', season or '')
    number = int(digits) if digits else 0
    return f"S{(number or 1) + 1}"


def ledger_timezone():
    return ZoneInfo(current_app.config.get('LEDGER_TIMEZONE') or 'UTC')


def _clean_name(name, what='Name') -> str:
    cleaned = (name or '').strip() if isinstance(name, str) else ''
    if not cleaned:
        raise ValidationError(f'{what} is required')
    return cleaned


# ---- Games ----

def create_game(account, name, season=None, fine_amount=None, currency=None) -> Game:
    require_account(account)
    cfg = current_app.config
    game = Game(
        name=_clean_name(name, 'Game name'),
        season=(season or '').strip() or cfg.get('DEFAULT_SEASON', 'S1'),
        fine_amount=parse_amount(fine_amount, default=cfg.get('DEFAULT_FINE_AMOUNT', 10)),
        currency=((currency or '').strip() or cfg.get('DEFAULT_CURRENCY', 'RM')).upper(),
        created_by=account.id,
    )
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(f"[game-create] game={game.id} owner={account.id} name={game.name!r}")
    publish_change(ENTITY_GAMES, ACTION_INSERT, game.id)
    return game


def get_game(account, game_id) -> Game:
    return require_access(account, game_id)


def get_user_games(account) -> List[Dict]:
    """Owned and member games, one entry per game, newest first."""
    require_account(account)
    by_id = {}
    for game in Game.query.filter_by(created_by=account.id).all():
        by_id[game.id] = (game, ROLE_OWNER)
    rows = (
        db.session.query(Membership, Game)
        .join(Game, Game.id == Membership.game_id)
        .filter(Membership.user_id == account.id)
        .all()
    )
    for membership, game in rows:
        if game.id not in by_id:
            by_id[game.id] = (game, membership.role)
    games = sorted(by_id.values(), key=lambda pair: pair[0].created_at, reverse=True)
    return [game.to_dict(user_role=role) for game, role in games]


def update_game(account, game_id, updates) -> Game:
    game = require_access(account, game_id)
    unknown = set(updates or {}) - set(EDITABLE_GAME_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update: {', '.join(sorted(unknown))}")
    if 'name' in updates:
        game.name = _clean_name(updates['name'], 'Game name')
    if 'season' in updates:
        game.season = _clean_name(updates['season'], 'Season')
    if 'fine_amount' in updates:
        game.fine_amount = parse_amount(updates['fine_amount'])
    if 'currency' in updates:
        game.currency = _clean_name(updates['currency'], 'Currency').upper()
    game.updated_at = utcnow()
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(f"[game-update] game={game.id} user={account.id} fields={sorted(updates)}")
    publish_change(ENTITY_GAMES, ACTION_UPDATE, game.id)
    return game


def delete_game(account, game_id) -> None:
    game = require_owner(account, game_id)
    gid = game.id
    # Children first; no reliance on database-level cascades
    Event.query.filter_by(game_id=gid).delete()
    Player.query.filter_by(game_id=gid).delete()
    Invite.query.filter_by(game_id=gid).delete()
    Membership.query.filter_by(game_id=gid).delete()
    db.session.delete(game)
    db.session.commit()
    current_app.logger.info(f"[game-delete] game={gid} owner={account.id}")
    publish_change(ENTITY_GAMES, ACTION_DELETE, gid)


# ---- Players ----

def add_player(account, game_id, name) -> Player:
    game = require_access(account, game_id)
    player = Player(game_id=game.id, name=_clean_name(name, 'Player name'))
    db.session.add(player)
    db.session.commit()
    current_app.logger.info(f"[player-add] game={game.id} player={player.id}")
    publish_change(ENTITY_PLAYERS, ACTION_INSERT, game.id, player.to_dict())
    return player


def get_players(account, game_id) -> List[Player]:
    game = require_access(account, game_id)
    return Player.query.filter_by(game_id=game.id).order_by(Player.created_at.asc()).all()


def _player_in_game(player_id, game_id) -> Player:
    player = Player.query.filter_by(id=str(player_id), game_id=game_id).first()
    if not player:
        raise NotFoundError('Player not found')
    return player


def rename_player(account, game_id, player_id, name) -> Player:
    game = require_access(account, game_id)
    player = _player_in_game(player_id, game.id)
    player.name = _clean_name(name, 'Player name')
    db.session.add(player)
    db.session.commit()
    publish_change(ENTITY_PLAYERS, ACTION_UPDATE, game.id, player.to_dict())
    return player


def delete_player(account, game_id, player_id) -> None:
    game = require_access(account, game_id)
    player = _player_in_game(player_id, game.id)
    # Events go before the player row, inside the same transaction
    removed = Event.query.filter_by(player_id=player.id).delete()
    db.session.delete(player)
    db.session.commit()
    current_app.logger.info(f"[player-delete] game={game.id} player={player_id} events_removed={removed}")
    publish_change(ENTITY_EVENTS, ACTION_DELETE, game.id)
    publish_change(ENTITY_PLAYERS, ACTION_DELETE, game.id, {'id': str(player_id)})


# ---- Events ----

def add_event(account, game_id, player_id, reason=None, amount=None) -> Event:
    """Record a late. ``amount`` defaults to the game's fine at this moment."""
    game = require_access(account, game_id)
    player = _player_in_game(player_id, game.id)
    event = Event(
        game_id=game.id,
        player_id=player.id,
        reason=(reason or '').strip() or 'Late',
        amount=parse_amount(amount, default=game.fine_amount),
        date_iso=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    current_app.logger.info(f"[event-add] game={game.id} player={player.id} amount={event.amount}")
    publish_change(ENTITY_EVENTS, ACTION_INSERT, game.id, event.to_dict())
    return event


def get_events(account, game_id) -> List[Event]:
    game = require_access(account, game_id)
    return Event.query.filter_by(game_id=game.id).order_by(Event.date_iso.desc()).all()


def delete_event(account, game_id, event_id) -> None:
    game = require_access(account, game_id)
    event = Event.query.filter_by(id=str(event_id), game_id=game.id).first()
    if not event:
        raise NotFoundError('Event not found')
    db.session.delete(event)
    db.session.commit()
    publish_change(ENTITY_EVENTS, ACTION_DELETE, game.id, {'id': str(event_id)})


def clear_all_events(account, game_id) -> int:
    game = require_access(account, game_id)
    removed = Event.query.filter_by(game_id=game.id).delete()
    db.session.commit()
    current_app.logger.info(f"[events-clear] game={game.id} removed={removed}")
    publish_change(ENTITY_EVENTS, ACTION_DELETE, game.id)
    return removed


def reset_season(account, game_id) -> str:
    """Clear the event log and advance the season label in one transaction.

    Players are kept.
    """
    game = require_access(account, game_id)
    previous = game.season
    try:
        removed = Event.query.filter_by(game_id=game.id).delete()
        game.season = next_season(previous)
        game.updated_at = utcnow()
        db.session.add(game)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info(f"[season-reset] game={game.id} {previous} -> {game.season} events_removed={removed}")
    publish_change(ENTITY_EVENTS, ACTION_DELETE, game.id)
    publish_change(ENTITY_GAMES, ACTION_UPDATE, game.id)
    return game.season


def get_game_data(account, game_id) -> Dict:
    """Game, players and events fetched together for one refresh."""
    game = require_access(account, game_id)
    players = Player.query.filter_by(game_id=game.id).order_by(Player.created_at.asc()).all()
    events = Event.query.filter_by(game_id=game.id).order_by(Event.date_iso.desc()).all()
    return {'game': game, 'players': players, 'events': events}
