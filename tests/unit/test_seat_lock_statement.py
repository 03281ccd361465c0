from sqlalchemy.dialects import postgresql

from src.infrastructure.repositories.seat_repository import seat_lock_statement


def _postgres_sql(seat_ids) -> str:
    return str(seat_lock_statement(seat_ids).compile(dialect=postgresql.dialect()))


def test_locks_seat_rows_only():
    sql = _postgres_sql([3, 1, 2])

    assert sql.rstrip().endswith("FOR UPDATE OF seats")


def test_locks_in_ascending_id_order():
    sql = _postgres_sql([3, 1, 2])

    assert "ORDER BY seats.id" in sql
    assert sql.index("ORDER BY seats.id") < sql.index("FOR UPDATE")
