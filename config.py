import os


BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-change-me-in-production')

    # Database – absolute path so the sqlite file lands next to the app
    DATABASE_URL = os.environ.get(
        'DATABASE_URL',
        'sqlite:///' + os.path.join(BASE_DIR, 'judge.db')
    )
    # Heroku uses 'postgres://' but SQLAlchemy requires 'postgresql://'
    if DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Bearer tokens
    TOKEN_MAX_AGE = int(os.environ.get('TOKEN_MAX_AGE', '604800'))  # 7 days

    # Sandbox (Piston) configuration
    PISTON_API_URL = os.environ.get('PISTON_API_URL', 'https://emkc.org/api/v2/piston/execute')
    SANDBOX_REQUEST_TIMEOUT = int(os.environ.get('SANDBOX_REQUEST_TIMEOUT', '30'))  # seconds

    # Judge configuration
    MAX_CODE_SIZE = int(os.environ.get('MAX_CODE_SIZE', '65536'))  # bytes
    STALE_SUBMISSION_MINUTES = int(os.environ.get('STALE_SUBMISSION_MINUTES', '15'))
    PLAYGROUND_TIME_LIMIT_MS = int(os.environ.get('PLAYGROUND_TIME_LIMIT_MS', '3000'))
    PLAYGROUND_MEMORY_LIMIT_MB = int(os.environ.get('PLAYGROUND_MEMORY_LIMIT_MB', '256'))

    # Language -> sandbox runtime
    LANGUAGE_RUNTIMES = {
        'javascript': {'language': 'javascript', 'version': '18.15.0', 'extension': '.js'},
        'python': {'language': 'python', 'version': '3.10.0', 'extension': '.py'},
        'java': {'language': 'java', 'version': '15.0.2', 'extension': '.java'},
        'cpp': {'language': 'cpp', 'version': '10.2.0', 'extension': '.cpp'},
        'c': {'language': 'c', 'version': '10.2.0', 'extension': '.c'},
        'csharp': {'language': 'csharp', 'version': '6.12.0', 'extension': '.cs'},
        'go': {'language': 'go', 'version': '1.16.2', 'extension': '.go'},
        'rust': {'language': 'rust', 'version': '1.68.2', 'extension': '.rs'},
        'php': {'language': 'php', 'version': '8.2.3', 'extension': '.php'},
        'ruby': {'language': 'ruby', 'version': '3.0.1', 'extension': '.rb'},
        'typescript': {'language': 'typescript', 'version': '5.0.3', 'extension': '.ts'},
    }
