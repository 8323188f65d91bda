from datetime import datetime, timezone
from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from quizproctor.core import config


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_user_schema_checked = False
_quiz_result_schema_checked = False


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection.
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def ensure_user_schema(bind: Engine | None = None) -> None:
    global _user_schema_checked

    if bind is not None:
        _upgrade_users_table(bind)
        return

    if _user_schema_checked:
        return

    with _schema_lock:
        if _user_schema_checked:
            return
        _upgrade_users_table(engine)
        _user_schema_checked = True


def _upgrade_users_table(target: Engine) -> None:
    inspector = inspect(target)

    if 'users' not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns('users')}
    migration_steps = [
        ('display_name', 'ALTER TABLE users ADD COLUMN display_name VARCHAR'),
        ('is_admin', 'ALTER TABLE users ADD COLUMN is_admin BOOLEAN DEFAULT FALSE'),
        ('is_blocked', 'ALTER TABLE users ADD COLUMN is_blocked BOOLEAN DEFAULT FALSE'),
        ('warning_count', 'ALTER TABLE users ADD COLUMN warning_count INTEGER DEFAULT 0'),
        ('quiz_restart_count', 'ALTER TABLE users ADD COLUMN quiz_restart_count INTEGER DEFAULT 0'),
        ('blocked_reason', 'ALTER TABLE users ADD COLUMN blocked_reason VARCHAR'),
        ('blocked_at', 'ALTER TABLE users ADD COLUMN blocked_at TIMESTAMP'),
    ]

    with target.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                connection.execute(text(statement))


def ensure_quiz_result_schema(bind: Engine | None = None) -> None:
    global _quiz_result_schema_checked

    if bind is not None:
        _upgrade_quiz_results_table(bind)
        return

    if _quiz_result_schema_checked:
        return

    with _schema_lock:
        if _quiz_result_schema_checked:
            return
        _upgrade_quiz_results_table(engine)
        _quiz_result_schema_checked = True


def _upgrade_quiz_results_table(target: Engine) -> None:
    inspector = inspect(target)

    if 'quiz_results' not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns('quiz_results')}
    migration_steps = [
        ('user_name', 'ALTER TABLE quiz_results ADD COLUMN user_name VARCHAR'),
        ('status', "ALTER TABLE quiz_results ADD COLUMN status VARCHAR DEFAULT 'pending'"),
    ]

    with target.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                connection.execute(text(statement))
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_quiz_results_user_id ON quiz_results(user_id)')
        )
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_quiz_results_quiz_type ON quiz_results(quiz_type)')
        )
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_quiz_results_status ON quiz_results(status)')
        )
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_quiz_results_completed_at ON quiz_results(completed_at)')
        )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
