import threading

from facepoints import db
from facepoints.models import Contest, ONE_PER_USER, Participation, SINGLE_WINNER, UNLIMITED_REPEATABLE
from facepoints.services import ledger, outcomes
from facepoints.services.identity import EnrollmentProfile, get_directory
from fakes import balance_of, photo

WORKERS = 8


def run_concurrently(app, count, target):
    """Start ``count`` workers together; each calls ``target(index)`` in its own app context."""
    barrier = threading.Barrier(count)
    results = [None] * count
    errors = []

    def worker(index):
        with app.app_context():
            barrier.wait()
            try:
                results[index] = target(index)
            except Exception as exc:  # re-raised by the assertion below
                errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    assert not errors, errors
    return results


def _contest(points, mode):
    contest = Contest(name=mode, points_awarded=points, mode=mode)
    db.session.add(contest)
    db.session.commit()
    return contest.code


def _enroll(*names):
    return [get_directory().enroll(photo(n), EnrollmentProfile(n)).id for n in names]


def test_one_per_user_race_awards_once(file_app):
    (alice_id,) = _enroll('alice')
    code = _contest(100, ONE_PER_USER)

    results = run_concurrently(file_app, WORKERS, lambda i: ledger.participate(code, photo('alice')))

    statuses = sorted(r.status for r in results)
    assert statuses.count(outcomes.SUCCESS) == 1
    assert statuses.count(outcomes.ALREADY_PARTICIPATED) == WORKERS - 1
    assert balance_of(alice_id) == 100
    assert Participation.query.count() == 1


def test_single_winner_race_has_one_winner(file_app):
    names = [f"player{i}" for i in range(WORKERS)]
    ids = _enroll(*names)
    code = _contest(500, SINGLE_WINNER)

    results = run_concurrently(file_app, WORKERS, lambda i: ledger.participate(code, photo(names[i])))

    winners = [r for r in results if r.status == outcomes.SUCCESS]
    assert len(winners) == 1
    losers = [r for r in results if r.status == outcomes.CONTEST_EXHAUSTED]
    assert len(losers) == WORKERS - 1
    assert {r.winner_name for r in losers} == {winners[0].display_name}
    assert sorted(balance_of(i) for i in ids) == [0] * (WORKERS - 1) + [500]


def test_unlimited_race_loses_no_increment(file_app):
    (alice_id,) = _enroll('alice')
    code = _contest(10, UNLIMITED_REPEATABLE)

    results = run_concurrently(file_app, WORKERS, lambda i: ledger.participate(code, photo('alice')))

    assert all(r.ok for r in results)
    assert balance_of(alice_id) == 10 * WORKERS
    rows = Participation.query.all()
    assert len(rows) == 1
    assert rows[0].points_awarded == 10 * WORKERS
    assert rows[0].award_count == WORKERS
