"""
Submission Record Store.

The only writer of Submission rows. Rows are never deleted, and once a
row reaches a terminal verdict it is never written again.
"""

import json

from models.database import db, Submission
from judge.verdicts import PENDING, RUNNING, TERMINAL_STATUSES


class SubmissionStateError(Exception):
    """Raised on an attempt to modify a submission in a terminal state."""


def create_submission(problem_id, user_id, code, language, total, challenge_id=None):
    """Insert a new pending submission and return its id."""
    submission = Submission(
        problem_id=problem_id,
        user_id=user_id,
        challenge_id=challenge_id,
        code=code,
        language=language,
        status=PENDING,
        test_cases_passed=0,
        test_cases_total=total,
    )
    db.session.add(submission)
    db.session.commit()
    return submission.id


def update_submission(submission_id, **fields):
    """Apply a partial update to a non-terminal submission.

    The terminal check is part of the UPDATE's WHERE clause, so a row
    finalised by another writer in the meantime is never overwritten.
    """
    if 'results' in fields:
        fields['results_json'] = json.dumps(fields.pop('results'))

    updated = Submission.query.filter(
        Submission.id == submission_id,
        Submission.status.notin_(sorted(TERMINAL_STATUSES)),
    ).update(fields, synchronize_session=False)

    if updated == 0:
        db.session.rollback()
        submission = db.session.get(Submission, submission_id)
        if submission is None:
            raise LookupError(f'Submission {submission_id} not found')
        raise SubmissionStateError(
            f'Submission {submission_id} is already {submission.status}')

    db.session.commit()
    return db.session.get(Submission, submission_id)


def mark_running(submission_id):
    return update_submission(submission_id, status=RUNNING)
