"""Derived views over a game's players and its event log.

Everything here is a pure function of the inputs: nothing is cached and the
only clock involved is the ``today`` argument used by streaks. Players and
events may be model instances or plain dicts with the same field names.
"""

from datetime import date, datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

STREAK_WINDOW_DAYS = 365


def _field(record, name):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name)


def _amount(event) -> Decimal:
    value = _field(event, 'amount')
    if value is None:
        return Decimal('0')
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _event_date(value, tz: Optional[tzinfo]) -> date:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if isinstance(value, datetime):
        # Naive timestamps from the database are UTC
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(tz or timezone.utc).date()
    return value


def totals_by_player(players: Iterable, events: Iterable) -> List[Dict]:
    """Late count and fine total per player, in player order.

    Uses the amount stored on each event, not the game's current fine.
    Events for unknown players are ignored.
    """
    totals = {}
    for p in players:
        pid = _field(p, 'id')
        totals[pid] = {'id': pid, 'name': _field(p, 'name'), 'lateCount': 0, 'amount': Decimal('0')}
    for e in events:
        row = totals.get(_field(e, 'player_id'))
        if row is not None:
            row['lateCount'] += 1
            row['amount'] += _amount(e)
    return list(totals.values())


def leaderboard(players: Iterable, events: Iterable) -> List[Dict]:
    # sorted() is stable: equal amounts keep player (creation) order
    return sorted(totals_by_player(players, events), key=lambda row: row['amount'], reverse=True)


def total_pool(events: Iterable) -> Decimal:
    return sum((_amount(e) for e in events), Decimal('0'))


def streaks(players: Iterable, events: Iterable, today: date, tz: Optional[tzinfo] = None) -> Dict:
    """Days since each player's most recent late, counting back from today.

    Day ``today - i`` is checked for i in 0..364; the first day with a late
    event stops the count. A player with no events in the window scores 365.
    """
    dates_by_player: Dict = {}
    for e in events:
        dates_by_player.setdefault(_field(e, 'player_id'), set()).add(_event_date(_field(e, 'date_iso'), tz))

    result = {}
    for p in players:
        pid = _field(p, 'id')
        late_days = dates_by_player.get(pid, set())
        days = 0
        for i in range(STREAK_WINDOW_DAYS):
            if today - timedelta(days=i) in late_days:
                break
            days += 1
        result[pid] = days
    return result


def top_contributor(board: List[Dict]) -> Optional[Dict]:
    return board[0] if board else None


def chart_data(board: List[Dict]) -> List[Dict]:
    return [{'name': row['name'], 'total': float(row['amount'])} for row in board]


def summarize(players, events, today: date, tz: Optional[tzinfo] = None) -> Dict:
    """All derived views for one refresh, JSON-ready."""
    players = list(players)
    events = list(events)
    board = leaderboard(players, events)
    streak_map = streaks(players, events, today, tz)
    rows = [
        {
            'id': row['id'],
            'name': row['name'],
            'lateCount': row['lateCount'],
            'amount': float(row['amount']),
            'streak': streak_map.get(row['id'], STREAK_WINDOW_DAYS),
        }
        for row in board
    ]
    return {
        'leaderboard': rows,
        'total_pool': float(total_pool(events)),
        'player_count': len(players),
        'top_contributor': top_contributor(rows),
        'chart': chart_data(board),
        'streaks': streak_map,
    }
