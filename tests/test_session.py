import pytest

from latefine.errors import AuthorizationError
from latefine.services import invites, ledger
from latefine.services.notifications import ChangeBus, bus
from latefine.session import DETAIL_STREAMS, GAME_DETAIL, GAME_LIST, GameSession


@pytest.fixture()
def game(owner):
    return ledger.create_game(owner, 'Friday Futsal', fine_amount=10)


@pytest.fixture()
def sessions():
    opened = []

    def _open(account, **kwargs):
        s = GameSession(account, **kwargs)
        opened.append(s)
        return s
    yield _open
    for s in opened:
        s.close()


def test_start_without_token_lists_games_and_inbox(owner, friend, game, sessions):
    invites.create_invite(owner, game.id, friend.email)
    mine = ledger.create_game(friend, 'Own Game')

    session = sessions(friend).start()
    assert session.state == GAME_LIST
    assert [g['id'] for g in session.games] == [mine.id]
    assert len(session.pending_invites) == 1
    assert session.show_invites is True

    session.dismiss_invites()
    assert session.show_invites is False


def test_start_with_token_selects_invited_game(owner, friend, game, sessions):
    code = invites.create_invite(owner, game.id, friend.email).invite_code

    session = sessions(friend, invite_token=code).start()
    assert session.state == GAME_DETAIL
    assert session.game.id == game.id
    assert session.invite_token is None
    assert session.last_invite_result['success'] is True
    assert bus.subscriber_count(game.id) == len(DETAIL_STREAMS)


def test_bad_token_falls_back_to_list(friend, sessions):
    session = sessions(friend, invite_token='bogus').start()
    assert session.state == GAME_LIST
    assert session.invite_token is None
    assert session.last_invite_result['success'] is False


def test_notification_triggers_full_refresh(owner, friend, game, sessions):
    code = invites.create_invite(owner, game.id, friend.email).invite_code
    invites.accept_invite(friend, code)

    viewer = sessions(owner).start().select_game(game.id)
    refreshes = viewer.refresh_count
    alice = ledger.add_player(friend, game.id, 'Alice')
    ledger.add_event(friend, game.id, alice.id, 'Traffic', 12)

    assert viewer.refresh_count > refreshes
    assert [p.name for p in viewer.players] == ['Alice']
    assert viewer.stats['total_pool'] == 12.0
    assert viewer.stats['leaderboard'][0]['streak'] == 0


def test_switching_games_releases_previous_subscription(owner, game, sessions):
    other = ledger.create_game(owner, 'Other')
    session = sessions(owner).start()

    session.select_game(game.id)
    session.select_game(other.id)
    assert bus.subscriber_count(game.id) == 0
    assert bus.subscriber_count(other.id) == len(DETAIL_STREAMS)

    session.back_to_games()
    assert session.state == GAME_LIST
    assert session.game is None
    assert bus.subscriber_count(other.id) == 0


def test_detail_actions(owner, game, sessions):
    session = sessions(owner).start().select_game(game.id)
    alice = session.add_player('Alice')
    session.mark_late(alice.id)
    assert session.stats['total_pool'] == 10.0

    session.update_settings(fine_amount=20)
    session.mark_late(alice.id, 'Traffic')
    assert session.stats['total_pool'] == 30.0

    assert session.reset_season() == 'S2'
    assert session.state == GAME_DETAIL
    assert session.events == []
    assert [p.name for p in session.players] == ['Alice']
    assert session.game.season == 'S2'


def test_removed_member_is_sent_back_to_list(owner, friend, game, sessions):
    code = invites.create_invite(owner, game.id, friend.email).invite_code
    member_view = sessions(friend, invite_token=code).start()
    assert member_view.state == GAME_DETAIL

    invites.remove_member(owner, game.id, friend.id)

    assert member_view.state == GAME_LIST
    assert member_view.game is None
    assert bus.subscriber_count(game.id) == 0


def test_leave_game_returns_to_list(owner, friend, game, sessions):
    code = invites.create_invite(owner, game.id, friend.email).invite_code
    session = sessions(friend, invite_token=code).start()
    session.leave_game()
    assert session.state == GAME_LIST
    assert session.games == []


def test_create_game_selects_it(owner, sessions):
    session = sessions(owner).start()
    created = session.create_game('Brand New', currency='usd')
    assert session.state == GAME_DETAIL
    assert session.game.id == created.id
    assert session.game.currency == 'USD'
    assert [g['id'] for g in session.games] == [created.id]


def test_unsubscribe_is_idempotent(app_ctx):
    local = ChangeBus()
    seen = []
    sub = local.subscribe(['players', 'events'], 'g1', seen.append)
    local.publish('players', 'insert', 'g1')
    sub.unsubscribe()
    sub.unsubscribe()
    local.publish('players', 'insert', 'g1')
    assert len(seen) == 1
    assert sub.active is False
    assert local.subscriber_count() == 0


def test_denied_selection_keeps_the_current_view(owner, stranger, sessions):
    secret = ledger.create_game(owner, 'Secret Club')
    mine = ledger.create_game(stranger, 'Own Game')
    session = sessions(stranger).start()

    with pytest.raises(AuthorizationError):
        session.select_game(secret.id)
    assert session.state == GAME_LIST

    session.select_game(mine.id)
    with pytest.raises(AuthorizationError):
        session.select_game(secret.id)
    assert session.state == GAME_DETAIL
    assert session.game.id == mine.id
    assert bus.subscriber_count(mine.id) == len(DETAIL_STREAMS)
