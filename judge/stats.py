"""
User Statistics Updater.

Folds one terminal submission into the (user, problem) aggregate with a
single INSERT ... ON CONFLICT DO UPDATE statement, so concurrent
submissions for the same pair cannot lose updates.
"""

from datetime import datetime, timezone

from sqlalchemy import case, true
from sqlalchemy.dialects import postgresql, sqlite

from models.database import db, UserProblemStats
from judge.verdicts import ACCEPTED

_DIALECT_INSERTS = {
    'sqlite': sqlite.insert,
    'postgresql': postgresql.insert,
}


def _insert_for(dialect_name):
    try:
        return _DIALECT_INSERTS[dialect_name]
    except KeyError:
        raise NotImplementedError(
            f'Atomic stats upsert is not available for {dialect_name}') from None


def _least(existing, incoming):
    # NULL means "no accepted run yet"
    return case(
        (existing.is_(None), incoming),
        (incoming < existing, incoming),
        else_=existing,
    )


def upsert_user_problem_stats(user_id, problem_id, verdict, execution_time_ms,
                              memory_used_mb, problem_points, now=None):
    """Record one terminal submission in the user's stats for a problem.

    attempts and last_attempted_at change on every call. Only an accepted
    verdict touches solved and the best metrics, and points are awarded
    only when solved flips from false to true.
    """
    table = UserProblemStats.__table__
    accepted = verdict == ACCEPTED
    now = now or datetime.now(timezone.utc)

    insert = _insert_for(db.session.get_bind().dialect.name)
    stmt = insert(table).values(
        user_id=user_id,
        problem_id=problem_id,
        attempts=1,
        solved=accepted,
        best_execution_time_ms=execution_time_ms if accepted else None,
        best_memory_used_mb=memory_used_mb if accepted else None,
        points_earned=problem_points if accepted else 0,
        last_attempted_at=now,
    )

    updates = {
        'attempts': table.c.attempts + 1,
        'last_attempted_at': stmt.excluded.last_attempted_at,
    }
    if accepted:
        updates.update({
            'solved': true(),
            'best_execution_time_ms': _least(table.c.best_execution_time_ms,
                                             stmt.excluded.best_execution_time_ms),
            'best_memory_used_mb': _least(table.c.best_memory_used_mb,
                                          stmt.excluded.best_memory_used_mb),
            # SET expressions see the pre-update row
            'points_earned': case(
                (table.c.solved == true(), table.c.points_earned),
                else_=stmt.excluded.points_earned,
            ),
        })

    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.user_id, table.c.problem_id],
        set_=updates,
    )
    db.session.execute(stmt)
    db.session.commit()
