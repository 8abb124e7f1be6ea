"""Invitation lifecycle and game membership.

An invite is ``pending`` until it is accepted or declined; both are terminal.
"Expired" is derived from ``expires_at`` at read time and never stored.
Cancelling deletes a pending invite outright.

Several pending invites for the same email and game may coexist: creating an
invite does not look for an earlier one.
"""

import secrets
from datetime import timedelta
from typing import Dict, List

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from latefine import db
from latefine.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from latefine.models import (
    INVITE_ACCEPTED, INVITE_DECLINED, INVITE_PENDING, ROLE_MEMBER, ROLE_OWNER,
    Account, Game, Invite, Membership, utcnow,
)
from latefine.services.access import is_owner, require_access, require_account, require_owner
from latefine.services.notifications import (
    ACTION_DELETE, ACTION_INSERT, ACTION_UPDATE, ENTITY_INVITES, ENTITY_MEMBERS, publish_change,
)
from latefine.socketio_events import evict_account

CODE_BYTES = 18


def normalize_email(email) -> str:
    cleaned = (email or '').strip().lower() if isinstance(email, str) else ''
    if not cleaned or '@' not in cleaned:
        raise ValidationError('A valid email address is required')
    return cleaned


def generate_invite_code() -> str:
    """Generate an unguessable invite code not already in use."""
    while True:
        code = secrets.token_urlsafe(CODE_BYTES)
        if not Invite.query.filter_by(invite_code=code).first():
            return code


def invite_link(invite: Invite) -> str:
    base = (current_app.config.get('PUBLIC_BASE_URL') or '').rstrip('/')
    return f"{base}/?invite={invite.invite_code}"


def is_link_invite(invite: Invite) -> bool:
    return invite.invited_email == current_app.config.get('LINK_INVITE_EMAIL')


def _ttl() -> timedelta:
    return timedelta(days=int(current_app.config.get('INVITE_TTL_DAYS', 7)))


def create_invite(account, game_id, email) -> Invite:
    game = require_owner(account, game_id)
    now = utcnow()
    invite = Invite(
        game_id=game.id,
        invited_email=normalize_email(email),
        invited_by=account.id,
        invite_code=generate_invite_code(),
        status=INVITE_PENDING,
        created_at=now,
        expires_at=now + _ttl(),
    )
    db.session.add(invite)
    db.session.commit()
    current_app.logger.info(f"[invite-create] game={game.id} by={account.id} email={invite.invited_email}")
    publish_change(ENTITY_INVITES, ACTION_INSERT, game.id)
    return invite


def create_link_invite(account, game_id) -> Invite:
    """Shareable invite: anyone holding the code may accept it."""
    return create_invite(account, game_id, current_app.config.get('LINK_INVITE_EMAIL'))


def list_invites(account, game_id) -> List[Invite]:
    game = require_access(account, game_id)
    return (
        Invite.query.filter_by(game_id=game.id)
        .order_by(Invite.created_at.desc())
        .all()
    )


def list_pending_invites_for_account(account) -> List[Invite]:
    require_account(account)
    return (
        Invite.query.filter(
            Invite.invited_email == (account.email or '').strip().lower(),
            Invite.invited_email != current_app.config.get('LINK_INVITE_EMAIL'),
            Invite.status == INVITE_PENDING,
            Invite.expires_at > utcnow(),
        )
        .order_by(Invite.created_at.desc())
        .all()
    )


def _is_member(game_id, account_id) -> bool:
    return Membership.query.filter_by(game_id=game_id, user_id=account_id).first() is not None


def _result(success, message, game_id=None) -> Dict:
    return {'success': success, 'message': message, 'game_id': game_id}


def accept_invite(account, invite_code) -> Dict:
    """Consume an invite and grant membership, all in one transaction.

    Expected failures (unknown code, already used, declined, expired) come
    back as ``success=False`` rather than raising. Of several concurrent
    attempts on one code, only the one whose conditional UPDATE matches the
    still-pending row succeeds; the rest see it as already accepted.
    """
    require_account(account)
    code = (invite_code or '').strip() if isinstance(invite_code, str) else ''
    if not code:
        return _result(False, 'Invite not found')

    invite = Invite.query.filter_by(invite_code=code).with_for_update().first()
    if not invite:
        db.session.rollback()
        current_app.logger.warning(f"[invite-accept] user={account.id} unknown code")
        return _result(False, 'Invite not found')

    game_id = invite.game_id
    if invite.status == INVITE_ACCEPTED:
        db.session.rollback()
        return _result(False, 'This invite has already been used', game_id)
    if invite.status == INVITE_DECLINED:
        db.session.rollback()
        return _result(False, 'This invite was declined', game_id)
    if invite.is_expired():
        db.session.rollback()
        current_app.logger.warning(f"[invite-accept] game={game_id} user={account.id} expired")
        return _result(False, 'This invite has expired', game_id)

    try:
        claimed = db.session.execute(
            update(Invite)
            .where(Invite.id == invite.id, Invite.status == INVITE_PENDING)
            .values(status=INVITE_ACCEPTED, accepted_by=account.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            db.session.rollback()
            return _result(False, 'This invite has already been used', game_id)

        game = db.session.get(Game, game_id)
        if not is_owner(account.id, game) and not _is_member(game_id, account.id):
            db.session.add(Membership(game_id=game_id, user_id=account.id, role=ROLE_MEMBER))
        db.session.commit()
    except IntegrityError:
        # Membership created concurrently through another invite; the whole
        # transaction is undone so this invite stays pending
        db.session.rollback()
        current_app.logger.warning(f"[invite-accept] game={game_id} user={account.id} membership race")
        return _result(False, 'You are already a member of this game', game_id)

    current_app.logger.info(f"[invite-accept] game={game_id} user={account.id} invite={invite.id}")
    publish_change(ENTITY_INVITES, ACTION_UPDATE, game_id)
    publish_change(ENTITY_MEMBERS, ACTION_INSERT, game_id)
    return _result(True, 'Invite accepted', game_id)


def _get_invite(invite_id) -> Invite:
    invite = db.session.get(Invite, str(invite_id))
    if not invite:
        raise NotFoundError('Invite not found')
    return invite


def decline_invite(account, invite_id) -> Invite:
    """Recipient rejects an invite; terminal invites are left as they are."""
    require_account(account)
    invite = _get_invite(invite_id)
    if is_link_invite(invite):
        # Shared links have no recipient to decline them
        raise AuthorizationError()
    if invite.invited_email != (account.email or '').strip().lower():
        raise AuthorizationError()
    if invite.status != INVITE_PENDING:
        return invite
    db.session.execute(
        update(Invite)
        .where(Invite.id == invite.id, Invite.status == INVITE_PENDING)
        .values(status=INVITE_DECLINED)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.refresh(invite)
    current_app.logger.info(f"[invite-decline] game={invite.game_id} user={account.id} invite={invite.id}")
    publish_change(ENTITY_INVITES, ACTION_UPDATE, invite.game_id)
    return invite


def cancel_invite(account, invite_id, game_id=None) -> None:
    """Owner withdraws a pending invite by deleting it."""
    require_account(account)
    invite = db.session.get(Invite, str(invite_id))
    if not invite or (game_id is not None and invite.game_id != str(game_id)):
        # Same answer as a foreign game's invite
        raise AuthorizationError()
    game = require_owner(account, invite.game_id)
    if invite.status != INVITE_PENDING:
        raise ConflictError(f"Cannot cancel an invite that was {invite.status}")
    db.session.delete(invite)
    db.session.commit()
    current_app.logger.info(f"[invite-cancel] game={game.id} owner={account.id} invite={invite_id}")
    publish_change(ENTITY_INVITES, ACTION_DELETE, game.id)


# ---- Membership ----

def list_members(account, game_id) -> List[Dict]:
    """Owner first (derived from the game), then members by join time."""
    game = require_access(account, game_id)
    owner = db.session.get(Account, game.created_by)
    members = [{
        'game_id': game.id,
        'user_id': game.created_by,
        'email': owner.email if owner else None,
        'role': ROLE_OWNER,
        'joined_at': game.to_dict()['created_at'],
    }]
    rows = Membership.query.filter_by(game_id=game.id).order_by(Membership.joined_at.asc()).all()
    members.extend(m.to_dict() for m in rows)
    return members


def remove_member(account, game_id, user_id) -> None:
    game = require_owner(account, game_id)
    if user_id == game.created_by:
        raise ValidationError('The game owner cannot be removed')
    removed = Membership.query.filter_by(game_id=game.id, user_id=user_id).delete()
    if not removed:
        db.session.rollback()
        raise NotFoundError('Member not found')
    db.session.commit()
    current_app.logger.info(f"[member-remove] game={game.id} owner={account.id} user={user_id}")
    evict_account(user_id, game.id)
    publish_change(ENTITY_MEMBERS, ACTION_DELETE, game.id)


def leave_game(account, game_id) -> None:
    game = require_access(account, game_id)
    if is_owner(account.id, game):
        raise ValidationError('The game owner cannot leave their own game')
    Membership.query.filter_by(game_id=game.id, user_id=account.id).delete()
    db.session.commit()
    current_app.logger.info(f"[member-leave] game={game.id} user={account.id}")
    evict_account(account.id, game.id)
    publish_change(ENTITY_MEMBERS, ACTION_DELETE, game.id)
