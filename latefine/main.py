from flask import Blueprint, current_app, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user, user_logged_in, user_logged_out
from latefine import db
from latefine.models import Account
from latefine.services.invites import normalize_email

main = Blueprint('main', __name__)

MIN_PASSWORD_LENGTH = 6


@main.route('/')
def index():
    return jsonify({'message': 'Late Fine Tracker API'})


@main.route('/api/auth/signup', methods=['POST'])
def sign_up():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get('email'))
    if email == current_app.config.get('LINK_INVITE_EMAIL'):
        return jsonify({'error': 'That email address is reserved'}), 400
    password = data.get('password') or ''
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({'error': f'Password must be at least {MIN_PASSWORD_LENGTH} characters'}), 400
    if Account.query.filter_by(email=email).first():
        return jsonify({'error': 'An account with that email already exists'}), 400

    account = Account(email=email)
    account.set_password(password)
    db.session.add(account)
    db.session.commit()
    login_user(account, remember=True)
    return jsonify({'user': account.to_dict()}), 201


@main.route('/api/auth/signin', methods=['POST'])
def sign_in():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    account = Account.query.filter_by(email=email).first()
    if account and account.check_password(data.get('password') or ''):
        login_user(account, remember=True)
        return jsonify({'user': account.to_dict()})
    return jsonify({'error': 'Invalid email or password'}), 401


@main.route('/api/auth/signout', methods=['POST'])
@login_required
def sign_out():
    logout_user()
    return jsonify({'success': True})


@main.route('/api/auth/me', methods=['GET'])
def get_current_user():
    if not current_user.is_authenticated:
        return jsonify({'user': None})
    return jsonify({'user': current_user.to_dict()})


def _log_signin(sender, user, **extra):
    sender.logger.info(f"[auth] signin user={user.id}")


def _log_signout(sender, user, **extra):
    sender.logger.info(f"[auth] signout user={user.id}")


user_logged_in.connect(_log_signin)
user_logged_out.connect(_log_signout)
