"""Contest participation ledger.

Each award is one transaction: the constrained insert (or in-place
accumulate) of the Participation row plus the balance increments. Duplicate
awards are stopped by the table's unique constraints, not by reading first;
a losing request gets an IntegrityError, rolls back, and reports which
outcome it lost to.

- single_winner: ``exclusive_contest_id`` is unique, so only one row per
  contest can ever commit.
- one_per_user: ``(identity_id, contest_id)`` is unique.
- unlimited_repeatable: the same unique row is bumped with
  ``points_awarded = points_awarded + n``.
"""

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from facepoints import db
from facepoints.clock import now
from facepoints.errors import InvalidRequest, LedgerConflict
from facepoints.models import (
    CONTEST_MODES,
    Contest,
    Identity,
    ONE_PER_USER,
    Participation,
    SINGLE_WINNER,
    UNLIMITED_REPEATABLE,
)
from facepoints.services import outcomes
from facepoints.services.balances import credit_points
from facepoints.services.identity import get_directory
from facepoints.socketio_events import broadcast_award, broadcast_contest_closed


def find_contest(contest_code):
    if not contest_code or not isinstance(contest_code, str):
        return None
    return Contest.query.filter_by(code=contest_code.strip().upper()).first()


def create_contest(name, points_awarded, mode=ONE_PER_USER, code=None, description=None):
    if not name:
        raise InvalidRequest('A contest name is required')
    if mode not in CONTEST_MODES:
        raise InvalidRequest(f"mode must be one of {', '.join(CONTEST_MODES)}")
    if isinstance(points_awarded, bool) or not isinstance(points_awarded, int) or points_awarded < 0:
        raise InvalidRequest('points_awarded must be a non-negative integer')
    if code is not None and not isinstance(code, str):
        raise InvalidRequest('code must be a string')
    code = code.strip().upper() if code else None
    if code and find_contest(code):
        raise InvalidRequest('That contest code is already in use')
    contest = Contest(name=name, description=description, points_awarded=points_awarded, mode=mode, code=code)
    db.session.add(contest)
    db.session.commit()
    current_app.logger.info(f"[contest-create] code={contest.code} mode={mode} points={points_awarded}")
    return contest


def participate(contest_code: str, photo: bytes) -> outcomes.ParticipationOutcome:
    """Identify the face in ``photo`` and award the contest to it.

    Oracle failures propagate as ``OracleUnavailable``; only a genuine
    no-match becomes ``not_registered``.
    """
    contest = find_contest(contest_code)
    if contest is None or not contest.active:
        return outcomes.ParticipationOutcome(outcomes.CONTEST_NOT_FOUND, contest_code=contest_code)

    match = get_directory().identify(photo)
    if match is None:
        return outcomes.ParticipationOutcome(outcomes.NOT_REGISTERED, contest_code=contest.code)

    return award_contest(match.identity, contest, match.similarity)


def award_contest(identity: Identity, contest: Contest, match_confidence=None) -> outcomes.ParticipationOutcome:
    identity_id, display_name = identity.id, identity.display_name
    contest_id, code, mode, points = contest.id, contest.code, contest.mode, contest.points_awarded

    if mode == UNLIMITED_REPEATABLE:
        return _accumulate(identity_id, display_name, contest_id, code, points, match_confidence)

    awarded_at = now()
    row = Participation(
        identity_id=identity_id,
        contest_id=contest_id,
        exclusive_contest_id=contest_id if mode == SINGLE_WINNER else None,
        points_awarded=points,
        award_count=1,
        match_confidence=match_confidence,
        awarded_at=awarded_at,
    )
    try:
        db.session.add(row)
        db.session.flush()
        new_balance, principal_id = credit_points(identity_id, points)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _lost_race(identity_id, display_name, contest_id, code, mode)
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"[award] identity={identity_id} contest={code} mode={mode} points={points} "
        f"balance={new_balance} principal={principal_id}"
    )
    broadcast_award(identity_id, points, principal_id)
    if mode == SINGLE_WINNER:
        broadcast_contest_closed(code, display_name)
    return outcomes.ParticipationOutcome(
        outcomes.SUCCESS,
        identity_id=identity_id,
        display_name=display_name,
        contest_code=code,
        points_awarded=points,
        new_balance=new_balance,
        match_confidence=match_confidence,
        awarded_at=awarded_at,
    )


def _lost_race(identity_id, display_name, contest_id, code, mode):
    """Translate a unique-constraint loss into the outcome it stands for."""
    if mode == SINGLE_WINNER:
        winner = Participation.query.filter_by(exclusive_contest_id=contest_id).first()
        if winner is not None and winner.identity_id != identity_id:
            current_app.logger.info(f"[award-exhausted] identity={identity_id} contest={code} winner={winner.identity_id}")
            return outcomes.ParticipationOutcome(
                outcomes.CONTEST_EXHAUSTED,
                identity_id=identity_id,
                display_name=display_name,
                contest_code=code,
                winner_name=winner.identity.display_name,
                awarded_at=winner.awarded_at,
            )
        if winner is not None:
            return outcomes.ParticipationOutcome(
                outcomes.ALREADY_WON,
                identity_id=identity_id,
                display_name=display_name,
                contest_code=code,
                points_awarded=winner.points_awarded,
                new_balance=winner.identity.point_balance,
                match_confidence=winner.match_confidence,
                awarded_at=winner.awarded_at,
                winner_name=display_name,
            )

    existing = Participation.query.filter_by(identity_id=identity_id, contest_id=contest_id).first()
    if existing is None:
        raise LedgerConflict()
    current_app.logger.info(f"[award-repeat] identity={identity_id} contest={code}")
    return outcomes.ParticipationOutcome(
        outcomes.ALREADY_PARTICIPATED,
        identity_id=identity_id,
        display_name=display_name,
        contest_code=code,
        points_awarded=existing.points_awarded,
        new_balance=existing.identity.point_balance,
        match_confidence=existing.match_confidence,
        awarded_at=existing.awarded_at,
    )


def _accumulate(identity_id, display_name, contest_id, code, points, match_confidence):
    # Two passes: if a concurrent first insert beats ours, the retry's update hits its row
    for _ in range(2):
        awarded_at = now()
        try:
            result = db.session.execute(
                update(Participation)
                .where(Participation.identity_id == identity_id, Participation.contest_id == contest_id)
                .values(
                    points_awarded=Participation.points_awarded + points,
                    award_count=Participation.award_count + 1,
                    match_confidence=match_confidence,
                    awarded_at=awarded_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.session.add(Participation(
                    identity_id=identity_id,
                    contest_id=contest_id,
                    points_awarded=points,
                    award_count=1,
                    match_confidence=match_confidence,
                    awarded_at=awarded_at,
                ))
                db.session.flush()
            new_balance, principal_id = credit_points(identity_id, points)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            current_app.logger.info(f"[award-retry] identity={identity_id} contest={code}")
            continue
        except Exception:
            db.session.rollback()
            raise
        break
    else:
        raise LedgerConflict()

    current_app.logger.info(
        f"[award] identity={identity_id} contest={code} mode={UNLIMITED_REPEATABLE} points={points} "
        f"balance={new_balance} principal={principal_id}"
    )
    broadcast_award(identity_id, points, principal_id)
    return outcomes.ParticipationOutcome(
        outcomes.SUCCESS,
        identity_id=identity_id,
        display_name=display_name,
        contest_code=code,
        points_awarded=points,
        new_balance=new_balance,
        match_confidence=match_confidence,
        awarded_at=awarded_at,
    )
