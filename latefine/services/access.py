from flask import current_app
from sqlalchemy import and_, exists, or_, select

from latefine import db
from latefine.errors import AuthenticationError, AuthorizationError
from latefine.models import ROLE_MEMBER, ROLE_OWNER, Game, Membership


def require_account(account):
    """Return the account or raise if nobody is signed in."""
    if account is None or not getattr(account, 'is_authenticated', False):
        raise AuthenticationError()
    return account


def has_access(account_id, game_id) -> bool:
    """Owner or member check, evaluated as one statement.

    A single EXISTS keeps the ownership and membership tests inside the same
    snapshot, so a membership cannot vanish between the two halves.
    """
    if account_id is None or game_id is None:
        return False
    member = (
        select(Membership.id)
        .where(Membership.game_id == Game.id, Membership.user_id == account_id)
        .exists()
    )
    stmt = select(
        exists().where(and_(Game.id == str(game_id), or_(Game.created_by == account_id, member)))
    )
    return bool(db.session.execute(stmt).scalar())


def is_owner(account_id, game) -> bool:
    return game is not None and account_id is not None and game.created_by == account_id


def require_access(account, game_id) -> Game:
    """Load a game the account may read and write.

    Unknown games and games without access raise the same error.
    """
    require_account(account)
    if not has_access(account.id, game_id):
        current_app.logger.warning(f"[access-denied] game={game_id} user={account.id}")
        raise AuthorizationError()
    return db.session.get(Game, str(game_id))


def require_owner(account, game_id) -> Game:
    game = require_access(account, game_id)
    if not is_owner(account.id, game):
        current_app.logger.warning(f"[owner-required] game={game_id} user={account.id}")
        raise AuthorizationError('Only the game owner can do that')
    return game


def user_role(account_id, game) -> str:
    return ROLE_OWNER if is_owner(account_id, game) else ROLE_MEMBER
