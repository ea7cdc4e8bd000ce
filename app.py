"""
Code Judge Service
Main application entry point.
"""

import os
import click
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from config import Config
from models.database import db  # Single shared SQLAlchemy instance
from judge.executor import PistonClient


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config_class=Config, executor=None):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialise extensions (uses the db created in models/database.py)
    db.init_app(app)

    # The sandbox client is shared by every request
    app.extensions['judge_executor'] = executor or PistonClient(
        api_url=app.config['PISTON_API_URL'],
        runtimes=app.config['LANGUAGE_RUNTIMES'],
        request_timeout=app.config['SANDBOX_REQUEST_TIMEOUT'],
    )

    # ------------------------------------------------------------------
    # Register blueprints
    # ------------------------------------------------------------------
    from routes.judge_routes import judge_bp
    from routes.problem_routes import problem_bp

    app.register_blueprint(judge_bp)
    app.register_blueprint(problem_bp)

    # ------------------------------------------------------------------
    # JSON errors
    # ------------------------------------------------------------------
    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return jsonify({'error': exc.description}), exc.code

    @app.errorhandler(SQLAlchemyError)
    def _database_error(exc):
        db.session.rollback()
        app.logger.exception('Database error: %s', exc)
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(Exception)
    def _unhandled_error(exc):
        db.session.rollback()
        app.logger.exception('Unhandled error: %s', exc)
        return jsonify({'error': 'Internal server error'}), 500

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    _register_commands(app)

    # ------------------------------------------------------------------
    # Create database tables (if they don't exist)
    # ------------------------------------------------------------------
    with app.app_context():
        # Import models so SQLAlchemy knows about them
        from models.database import User, Problem, Challenge, TestCase, Submission, UserProblemStats  # noqa: F401
        db.create_all()

    return app


# ---------------------------------------------------------------------------
# CLI commands (flask --app app <command>)
# ---------------------------------------------------------------------------


def _register_commands(app):

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        db.create_all()
        click.echo('Database initialised.')

    @app.cli.command('issue-token')
    @click.argument('user_id')
    @click.option('--name', default=None, help='Display name for a new user.')
    @click.option('--role', type=click.Choice(['member', 'author']), default='member')
    def issue_token_command(user_id, name, role):
        """Create USER_ID if needed and print a bearer token for it."""
        from models.database import User
        from auth.bearer import make_token

        user = db.session.get(User, user_id)
        if user is None:
            user = User(id=user_id, name=name or user_id, role=role)
            db.session.add(user)
        else:
            user.role = role
            if name:
                user.name = name
        db.session.commit()
        click.echo(make_token(user.id))

    @app.cli.command('sweep-stale')
    @click.option('--minutes', type=int, default=None,
                  help='Age after which a pending/running submission is stale.')
    def sweep_stale_command(minutes):
        """Close out submissions left pending/running by a crashed judge."""
        from judge.runner import sweep_stale_submissions

        if minutes is None:
            minutes = app.config['STALE_SUBMISSION_MINUTES']
        swept = sweep_stale_submissions(minutes)
        click.echo(f'Swept {len(swept)} stale submission(s).')


# ---------------------------------------------------------------------------
# When running directly or via gunicorn (gunicorn app:app)
# ---------------------------------------------------------------------------

app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=True)
