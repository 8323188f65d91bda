from sqlalchemy import create_engine, inspect, text

from quizproctor.database import ensure_quiz_result_schema, ensure_user_schema


def test_ensure_user_schema_adds_counter_and_block_columns() -> None:
    engine = create_engine('sqlite://')
    with engine.begin() as connection:
        connection.execute(text('CREATE TABLE users (id VARCHAR PRIMARY KEY, email VARCHAR, password_hash VARCHAR)'))

    ensure_user_schema(bind=engine)

    columns = {column['name'] for column in inspect(engine).get_columns('users')}
    assert {'is_admin', 'is_blocked', 'warning_count', 'quiz_restart_count', 'blocked_reason', 'blocked_at'} <= columns


def test_ensure_quiz_result_schema_adds_status_and_indexes() -> None:
    engine = create_engine('sqlite://')
    with engine.begin() as connection:
        connection.execute(text(
            'CREATE TABLE quiz_results (id VARCHAR PRIMARY KEY, user_id VARCHAR, quiz_type VARCHAR, '
            'completed_at DATETIME)'
        ))
        connection.execute(text("INSERT INTO quiz_results (id, user_id, quiz_type) VALUES ('r1', 'u1', 'plugin')"))

    ensure_quiz_result_schema(bind=engine)

    inspector = inspect(engine)
    columns = {column['name'] for column in inspector.get_columns('quiz_results')}
    indexes = {index['name'] for index in inspector.get_indexes('quiz_results')}
    with engine.connect() as connection:
        status = connection.execute(text("SELECT status FROM quiz_results WHERE id = 'r1'")).scalar_one()
    assert {'status', 'user_name'} <= columns
    assert 'idx_quiz_results_completed_at' in indexes
    assert status == 'pending'


def test_ensure_schema_ignores_missing_tables() -> None:
    engine = create_engine('sqlite://')

    ensure_user_schema(bind=engine)
    ensure_quiz_result_schema(bind=engine)

    assert inspect(engine).get_table_names() == []
