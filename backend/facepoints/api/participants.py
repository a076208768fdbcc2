from flask import Blueprint, jsonify

from facepoints.api import json_body, photo_from, require_session_identity
from facepoints.errors import IdentityNotFound, SessionForbidden
from facepoints.services import companions, ranking, sessions
from facepoints.services.identity import (
    EnrollmentProfile,
    get_directory,
    get_identity,
    validate_employee_code,
)


participants = Blueprint('participants', __name__)


@participants.route('/register', methods=['POST'])
def register():
    data = json_body()
    profile = EnrollmentProfile.from_payload(data)
    photo = photo_from(data)
    identity = get_directory().enroll(photo, profile)
    session = sessions.issue(identity.id)
    return jsonify({
        'message': 'Registered',
        'identity': identity.to_dict(),
        'session': session.to_dict(),
    }), 201


@participants.route('/profile', methods=['POST'])
def profile_by_photo():
    """Identify by photo, return the profile and start a session."""
    data = json_body()
    photo = photo_from(data)
    match = get_directory().identify(photo)
    if match is None:
        return jsonify({'status': 'not_registered', 'message': "We don't recognize you. First time here?"}), 404
    payload = ranking.history(match.identity.id)
    payload['similarity'] = match.similarity
    payload['session'] = sessions.issue(match.identity.id).to_dict()
    return jsonify(payload)


@participants.route('/me', methods=['GET'])
def profile_by_session():
    identity_id = require_session_identity()
    return jsonify(ranking.history(identity_id))


@participants.route('/<int:identity_id>/companion', methods=['GET'])
def get_companion(identity_id):
    if get_identity(identity_id) is None:
        raise IdentityNotFound()
    companion = companions.companion_of(identity_id)
    principal = companions.resolve_principal(identity_id)
    return jsonify({
        'has_companion': companion is not None,
        'companion': companion.to_dict() if companion else None,
        'principal': principal.to_dict() if principal else None,
    })


@participants.route('/<int:identity_id>/companion', methods=['POST'])
def add_companion(identity_id):
    # Only the principal, holding their own session, may add a companion
    if require_session_identity() != identity_id:
        raise SessionForbidden()
    data = json_body()
    profile = EnrollmentProfile.from_payload(data)
    photo = photo_from(data)
    companion = companions.link(identity_id, photo, profile)
    return jsonify({'message': 'Companion registered', 'companion': companion.to_dict()}), 201


@participants.route('/employee-codes/<string:code>', methods=['GET'])
def check_employee_code(code):
    return jsonify(validate_employee_code(code))
