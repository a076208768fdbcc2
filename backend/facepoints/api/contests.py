from flask import Blueprint, jsonify
from flask_login import login_required

from facepoints.api import json_body, photo_from, session_token, text_field
from facepoints.errors import ContestNotFound
from facepoints.models import ONE_PER_USER
from facepoints.services import ledger, outcomes, ranking, sessions


contests = Blueprint('contests', __name__)

_HTTP_STATUS = {
    outcomes.SUCCESS: 200,
    outcomes.ALREADY_WON: 200,
    outcomes.ALREADY_PARTICIPATED: 200,
    outcomes.CONTEST_EXHAUSTED: 200,
    outcomes.NOT_REGISTERED: 404,
    outcomes.CONTEST_NOT_FOUND: 404,
}


@contests.route('', methods=['GET'])
def list_contests():
    return jsonify(ranking.contest_summaries())


@contests.route('', methods=['POST'])
@login_required
def create_contest():
    data = json_body()
    contest = ledger.create_contest(
        name=text_field(data, 'name'),
        points_awarded=data.get('points_awarded'),
        mode=text_field(data, 'mode') or ONE_PER_USER,
        code=text_field(data, 'code'),
        description=text_field(data, 'description'),
    )
    return jsonify(contest.to_dict()), 201


@contests.route('/<string:code>', methods=['GET'])
def get_contest(code):
    contest = ledger.find_contest(code)
    if contest is None:
        raise ContestNotFound()
    return jsonify(contest.to_dict())


@contests.route('/<string:code>/participate', methods=['POST'])
def participate(code):
    data = json_body()
    photo = photo_from(data)
    outcome = ledger.participate(code, photo)
    payload = outcome.to_dict()
    if outcome.ok:
        payload['session'] = sessions.renew_or_issue(session_token(), outcome.identity_id).to_dict()
    return jsonify(payload), _HTTP_STATUS[outcome.status]


@contests.route('/<int:contest_id>/participants', methods=['GET'])
def contest_participants(contest_id):
    return jsonify(ranking.contest_participants(contest_id))
