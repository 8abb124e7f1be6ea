from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import SQLAlchemyError
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

# Children before parents
CLEARABLE_TABLES = ['event', 'player', 'game_invite', 'game_member', 'game']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from latefine.main import main
    flask_app.register_blueprint(main)

    from latefine.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from latefine.api.invites import invites
    flask_app.register_blueprint(invites, url_prefix='/api/invites')

    from latefine.api.session import session_bp
    flask_app.register_blueprint(session_bp, url_prefix='/api/session')

    from latefine.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    _register_error_handlers(flask_app)

    from latefine.models import Account

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(Account, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'You must sign in'}), 401

    _register_cli(flask_app)

    return flask_app


def _register_error_handlers(flask_app):
    from latefine.errors import LedgerError

    @flask_app.errorhandler(LedgerError)
    def handle_ledger_error(exc):
        if exc.status_code >= 500:
            flask_app.logger.error(f"[error] {exc.message}")
        return jsonify({'error': exc.message}), exc.status_code

    @flask_app.errorhandler(SQLAlchemyError)
    def handle_store_error(exc):
        db.session.rollback()
        flask_app.logger.exception(f"[store-error] {exc.__class__.__name__}")
        return jsonify({'error': 'Something went wrong, please try again'}), 500


def _register_cli(flask_app):
    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from latefine.models import Account, Event, Game, Player
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            accounts = []
            for email in ['owner@example.com', 'friend@example.com']:
                account = Account(email=email)
                account.set_password('password')
                db.session.add(account)
                accounts.append(account)
            db.session.flush()

            game = Game(name='Demo Game', season='S1', fine_amount=10, currency='RM',
                        created_by=accounts[0].id)
            db.session.add(game)
            db.session.flush()
            you = Player(game_id=game.id, name='You')
            friend = Player(game_id=game.id, name='Friend')
            db.session.add_all([you, friend])
            db.session.flush()
            for player, reason in [(you, 'Traffic'), (friend, 'Overslept'), (friend, 'Coffee run')]:
                db.session.add(Event(game_id=game.id, player_id=player.id, reason=reason, amount=10))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('db-clear')
    @click.option('--tables', default=','.join(CLEARABLE_TABLES),
                  help='Comma-separated list of tables to clear.')
    @click.option('--dry-run', is_flag=True, help='Show what would be deleted.')
    @click.option('--confirm', is_flag=True, help='Skip the confirmation prompt.')
    def db_clear_command(tables, dry_run, confirm):
        """Deletes ledger rows in dependency order. Accounts are kept."""
        requested = [t.strip() for t in tables.split(',') if t.strip()]
        unknown = [t for t in requested if t not in CLEARABLE_TABLES]
        if unknown:
            raise click.BadParameter(f"unknown tables: {', '.join(unknown)}", param_hint='--tables')
        ordered = [t for t in CLEARABLE_TABLES if t in requested]
        with flask_app.app_context():
            counts = {}
            for name in ordered:
                table = db.metadata.tables[name]
                counts[name] = db.session.execute(db.select(db.func.count()).select_from(table)).scalar()
                click.echo(f"{name}: {counts[name]} rows")
            if dry_run:
                click.echo('Dry run, nothing deleted.')
                return
            if not confirm and not click.confirm('Delete these rows? This cannot be undone', default=False):
                click.echo('Aborted.')
                return
            for name in ordered:
                db.session.execute(db.metadata.tables[name].delete())
            db.session.commit()
            click.echo(f"Deleted {sum(counts.values())} rows.")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(db_clear_command)
