from datetime import datetime, timezone

from flask import Blueprint, jsonify
from flask_login import login_required

from facepoints.api import json_body, require_session_identity, session_token, text_field
from facepoints.errors import InvalidRequest
from facepoints.services import outcomes, ranking, sessions
from facepoints.services import trivia as trivia_service


trivia = Blueprint('trivia', __name__)

_HTTP_STATUS = {
    outcomes.SUCCESS: 200,
    outcomes.TRIVIA_NOT_FOUND: 404,
    outcomes.TRIVIA_INACTIVE: 409,
    outcomes.ALREADY_ANSWERED: 409,
    outcomes.QUESTION_MISMATCH: 400,
    outcomes.NOT_STARTED: 409,
    outcomes.CLOSED: 409,
}


def _parse_timestamp(value, field):
    """Accept ISO-8601; aware values are converted to naive UTC."""
    if not value:
        raise InvalidRequest(f"{field} is required")
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise InvalidRequest(f"{field} must be an ISO-8601 timestamp")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_int(value, field):
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequest(f"{field} must be an integer")
    return value


@trivia.route('', methods=['GET'])
def list_trivia():
    return jsonify(ranking.trivia_summaries())


@trivia.route('', methods=['POST'])
@login_required
def create_trivia():
    data = json_body()
    created = trivia_service.create_trivia(
        name=text_field(data, 'name'),
        description=text_field(data, 'description'),
        window_start=_parse_timestamp(data.get('window_start'), 'window_start'),
        window_end=_parse_timestamp(data.get('window_end'), 'window_end'),
        points_max=_parse_int(data.get('points_max'), 'points_max'),
        points_min=_parse_int(data.get('points_min'), 'points_min'),
        questions=data.get('questions') or [],
    )
    payload = created.to_dict()
    payload['questions'] = [q.to_dict(include_answer=True) for q in created.questions]
    return jsonify(payload), 201


@trivia.route('/active', methods=['GET'])
def active_trivia():
    # The session is optional here; it only drives already_answered
    identity_id = None
    if session_token():
        check = sessions.validate(session_token())
        identity_id = check.identity_id if check.ok else None
    view = trivia_service.get_active_trivia(identity_id)
    if view is None:
        return jsonify({'status': 'none', 'message': 'No trivia is open right now'}), 404
    return jsonify(view.to_dict())


@trivia.route('/<int:trivia_id>/answer', methods=['POST'])
def answer(trivia_id):
    identity_id = require_session_identity()
    data = json_body()
    question_id = data.get('question_id')
    if question_id is not None:
        question_id = _parse_int(question_id, 'question_id')
    outcome = trivia_service.answer(identity_id, trivia_id, question_id, data.get('answer'))
    payload = outcome.to_dict()
    if outcome.ok:
        payload['session'] = sessions.renew_or_issue(session_token(), identity_id).to_dict()
    return jsonify(payload), _HTTP_STATUS[outcome.status]


@trivia.route('/<int:trivia_id>/participants', methods=['GET'])
def trivia_participants(trivia_id):
    return jsonify(ranking.trivia_participants(trivia_id))
