"""Read-only projections over the ledger: leaderboard, history, audit."""

from sqlalchemy import func, select

from facepoints import db
from facepoints.clock import now
from facepoints.errors import ContestNotFound, IdentityNotFound, TriviaNotFound
from facepoints.models import (
    CompanionLink,
    Contest,
    Identity,
    Participation,
    Trivia,
    TriviaResponse,
    isoformat,
)
from facepoints.services.identity import get_identity


def _contest_counts():
    return (
        select(Participation.identity_id, func.count(Participation.id).label('n'))
        .group_by(Participation.identity_id)
        .subquery()
    )


def _trivia_counts():
    return (
        select(TriviaResponse.identity_id, func.count(TriviaResponse.id).label('n'))
        .group_by(TriviaResponse.identity_id)
        .subquery()
    )


def leaderboard(limit=50, include_zero=False):
    """Identities by balance, highest first; earlier enrollment wins ties."""
    contests = _contest_counts()
    trivia = _trivia_counts()
    query = (
        select(
            Identity,
            func.coalesce(contests.c.n, 0),
            func.coalesce(trivia.c.n, 0),
        )
        .outerjoin(contests, contests.c.identity_id == Identity.id)
        .outerjoin(trivia, trivia.c.identity_id == Identity.id)
        .where(Identity.active.is_(True))
        .order_by(Identity.point_balance.desc(), Identity.enrolled_at.asc(), Identity.id.asc())
    )
    if not include_zero:
        query = query.where(Identity.point_balance > 0)
    rows = db.session.execute(query.limit(limit)).all()
    return [
        {
            'position': index + 1,
            'id': identity.id,
            'display_name': identity.display_name,
            'point_balance': identity.point_balance,
            'is_companion': identity.is_companion,
            'contest_count': contest_count,
            'trivia_count': trivia_count,
            'enrolled_at': isoformat(identity.enrolled_at),
        }
        for index, (identity, contest_count, trivia_count) in enumerate(rows)
    ]


def ranking_stats():
    total, points, average, best = db.session.execute(
        select(
            func.count(Identity.id),
            func.coalesce(func.sum(Identity.point_balance), 0),
            func.avg(Identity.point_balance),
            func.coalesce(func.max(Identity.point_balance), 0),
        ).where(Identity.active.is_(True))
    ).one()
    return {
        'total_identities': total,
        'total_points': int(points),
        'average_points': int(round(float(average or 0))),
        'max_points': int(best),
    }


def history(identity_id):
    """Awards of an identity (and of its companion, for a principal), newest first."""
    identity = get_identity(identity_id)
    if identity is None:
        raise IdentityNotFound()
    companion_id = db.session.execute(
        select(CompanionLink.companion_id).where(CompanionLink.principal_id == identity.id)
    ).scalar_one_or_none()
    owners = [identity.id] + ([companion_id] if companion_id is not None else [])

    entries = []
    contest_rows = db.session.execute(
        select(Participation, Contest)
        .join(Contest, Contest.id == Participation.contest_id)
        .where(Participation.identity_id.in_(owners))
    ).all()
    for row, contest in contest_rows:
        entries.append({
            'kind': 'contest',
            'id': row.id,
            'identity_id': row.identity_id,
            'via_companion': row.identity_id != identity.id,
            'event': contest.name,
            'code': contest.code,
            'points': row.points_awarded,
            'award_count': row.award_count,
            'is_correct': None,
            'occurred_at': row.awarded_at,
        })
    trivia_rows = db.session.execute(
        select(TriviaResponse, Trivia)
        .join(Trivia, Trivia.id == TriviaResponse.trivia_id)
        .where(TriviaResponse.identity_id.in_(owners))
    ).all()
    for row, trivia in trivia_rows:
        entries.append({
            'kind': 'trivia',
            'id': row.id,
            'identity_id': row.identity_id,
            'via_companion': row.identity_id != identity.id,
            'event': trivia.name,
            'code': None,
            'points': row.points_awarded,
            'award_count': 1,
            'is_correct': row.is_correct,
            'occurred_at': row.answered_at,
        })
    entries.sort(key=lambda e: (e['occurred_at'], e['kind'], e['id']), reverse=True)

    own = [e for e in entries if not e['via_companion']]
    summary = {
        'point_balance': identity.point_balance,
        'contest_points': sum(e['points'] for e in own if e['kind'] == 'contest'),
        'trivia_points': sum(e['points'] for e in own if e['kind'] == 'trivia'),
        'contest_count': sum(1 for e in own if e['kind'] == 'contest'),
        'trivia_count': sum(1 for e in own if e['kind'] == 'trivia'),
    }
    for entry in entries:
        entry['occurred_at'] = isoformat(entry['occurred_at'])
    return {
        'identity': identity.to_dict(),
        'point_balance': identity.point_balance,
        'summary': summary,
        'history': entries,
    }


def audit_identities():
    contests = _contest_counts()
    trivia = _trivia_counts()
    rows = db.session.execute(
        select(Identity, func.coalesce(contests.c.n, 0), func.coalesce(trivia.c.n, 0))
        .outerjoin(contests, contests.c.identity_id == Identity.id)
        .outerjoin(trivia, trivia.c.identity_id == Identity.id)
        .order_by(Identity.enrolled_at.desc(), Identity.id.desc())
    ).all()
    result = []
    for identity, contest_count, trivia_count in rows:
        payload = identity.to_dict()
        payload['contest_count'] = contest_count
        payload['trivia_count'] = trivia_count
        result.append(payload)
    return result


def contest_summaries():
    rows = db.session.execute(
        select(
            Contest,
            func.count(Participation.id),
            func.coalesce(func.sum(Participation.points_awarded), 0),
        )
        .outerjoin(Participation, Participation.contest_id == Contest.id)
        .group_by(Contest.id)
        .order_by(Contest.id.desc())
    ).all()
    result = []
    for contest, participations, points in rows:
        payload = contest.to_dict()
        payload['participation_count'] = participations
        payload['points_granted'] = int(points)
        result.append(payload)
    return result


def contest_participants(contest_id):
    contest = db.session.get(Contest, contest_id)
    if contest is None:
        raise ContestNotFound()
    rows = (
        Participation.query
        .filter_by(contest_id=contest.id)
        .order_by(Participation.awarded_at.asc(), Participation.id.asc())
        .all()
    )
    return {
        'contest': contest.to_dict(),
        'participants': [
            {
                'position': index + 1,
                'participation_id': row.id,
                'identity_id': row.identity_id,
                'display_name': row.identity.display_name,
                'points': row.points_awarded,
                'award_count': row.award_count,
                'awarded_at': isoformat(row.awarded_at),
            }
            for index, row in enumerate(rows)
        ],
        'total': len(rows),
    }


def trivia_summaries():
    at = now()
    rows = db.session.execute(
        select(
            Trivia,
            func.count(TriviaResponse.id),
            func.coalesce(func.sum(TriviaResponse.points_awarded), 0),
        )
        .outerjoin(TriviaResponse, TriviaResponse.trivia_id == Trivia.id)
        .group_by(Trivia.id)
        .order_by(Trivia.window_start.desc())
    ).all()
    result = []
    for trivia, responses, points in rows:
        payload = trivia.to_dict()
        payload['state'] = trivia.state_at(at)
        payload['response_count'] = responses
        payload['points_granted'] = int(points)
        result.append(payload)
    return result


def trivia_participants(trivia_id):
    trivia = db.session.get(Trivia, trivia_id)
    if trivia is None:
        raise TriviaNotFound()
    rows = (
        TriviaResponse.query
        .filter_by(trivia_id=trivia.id)
        .order_by(TriviaResponse.points_awarded.desc(), TriviaResponse.answered_at.asc())
        .all()
    )
    return {
        'trivia': trivia.to_dict(),
        'participants': [
            {
                'position': index + 1,
                'response_id': row.id,
                'identity_id': row.identity_id,
                'display_name': row.identity.display_name,
                'points': row.points_awarded,
                'is_correct': row.is_correct,
                'answered_at': isoformat(row.answered_at),
            }
            for index, row in enumerate(rows)
        ],
        'total': len(rows),
    }
