from datetime import date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from latefine.services.stats import (
    STREAK_WINDOW_DAYS, leaderboard, streaks, summarize, total_pool, totals_by_player,
)

TODAY = date(2026, 10, 18)


def _at(day, hour=9):
    return datetime(day.year, day.month, day.day, hour, 0)


def _players(*names):
    return [{'id': f'p{i}', 'name': n} for i, n in enumerate(names)]


def _event(pid, amount, when=None):
    return {'player_id': pid, 'amount': amount, 'date_iso': when or _at(TODAY)}


def test_total_pool_is_order_independent():
    events = [_event('p0', Decimal('10')), _event('p1', Decimal('15')), _event('p0', Decimal('2.50'))]
    assert total_pool(events) == Decimal('27.50')
    assert total_pool(list(reversed(events))) == Decimal('27.50')
    assert total_pool([]) == 0


def test_totals_use_stored_event_amounts_and_include_idle_players():
    players = _players('Alice', 'Bob', 'Cara')
    events = [_event('p0', 10), _event('p0', 12), _event('p1', 15), _event('ghost', 99)]
    rows = {r['name']: r for r in totals_by_player(players, events)}
    assert rows['Alice']['lateCount'] == 2
    assert rows['Alice']['amount'] == 22
    assert rows['Bob']['lateCount'] == 1
    assert rows['Cara'] == {'id': 'p2', 'name': 'Cara', 'lateCount': 0, 'amount': 0}


def test_leaderboard_descends_by_amount():
    players = _players('Alice', 'Bob', 'Cara', 'Dan')
    events = [_event('p0', 10), _event('p1', 15), _event('p3', 5), _event('p3', 30)]
    board = leaderboard(players, events)
    amounts = [row['amount'] for row in board]
    assert all(a >= b for a, b in zip(amounts, amounts[1:]))
    assert board[0]['name'] == 'Dan'
    assert board[-1]['name'] == 'Cara'


def test_streak_is_zero_when_late_today():
    players = _players('Alice')
    assert streaks(players, [_event('p0', 10, _at(TODAY, 23))], TODAY) == {'p0': 0}


def test_streak_counts_days_since_last_late():
    players = _players('Alice')
    events = [_event('p0', 10, _at(TODAY - timedelta(days=3))), _event('p0', 10, _at(TODAY - timedelta(days=9)))]
    assert streaks(players, events, TODAY) == {'p0': 3}


def test_streak_saturates_without_recent_events():
    players = _players('Alice', 'Bob')
    events = [_event('p1', 10, _at(TODAY - timedelta(days=400)))]
    assert streaks(players, events, TODAY) == {'p0': STREAK_WINDOW_DAYS, 'p1': STREAK_WINDOW_DAYS}


def test_streak_uses_local_calendar_date():
    players = _players('Alice')
    # 23:30 UTC on the 17th is already the 18th in Kuala Lumpur
    events = [_event('p0', 10, datetime(2026, 10, 17, 23, 30))]
    assert streaks(players, events, TODAY, ZoneInfo('Asia/Kuala_Lumpur')) == {'p0': 0}
    assert streaks(players, events, TODAY, ZoneInfo('UTC')) == {'p0': 1}


def test_summarize_friday_futsal():
    players = _players('Alice', 'Bob')
    events = [_event('p0', Decimal('10')), _event('p1', Decimal('15'))]
    summary = summarize(players, events, TODAY)
    assert summary['total_pool'] == 25.0
    assert [(r['name'], r['amount']) for r in summary['leaderboard']] == [('Bob', 15.0), ('Alice', 10.0)]
    assert summary['player_count'] == 2
    assert summary['top_contributor']['name'] == 'Bob'
    assert summary['chart'] == [{'name': 'Bob', 'total': 15.0}, {'name': 'Alice', 'total': 10.0}]
    assert all(r['streak'] == 0 for r in summary['leaderboard'])


def test_summarize_empty_game():
    summary = summarize([], [], TODAY)
    assert summary['leaderboard'] == []
    assert summary['top_contributor'] is None
    assert summary['total_pool'] == 0
