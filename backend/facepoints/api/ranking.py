from flask import Blueprint, current_app, jsonify

from facepoints.api import int_arg
from facepoints.clock import now
from facepoints.models import isoformat
from facepoints.services import ranking as ranking_service


ranking = Blueprint('ranking', __name__)


@ranking.route('/ranking', methods=['GET'])
def get_ranking():
    cfg = current_app.config
    limit = int_arg('limit', cfg.get('RANKING_DEFAULT_LIMIT', 50), maximum=cfg.get('RANKING_MAX_LIMIT', 500))
    return jsonify({
        'ranking': ranking_service.leaderboard(limit=limit),
        'stats': ranking_service.ranking_stats(),
        'generated_at': isoformat(now()),
    })


@ranking.route('/audit/identities', methods=['GET'])
def audit_identities():
    return jsonify(ranking_service.audit_identities())


@ranking.route('/audit/identities/<int:identity_id>/history', methods=['GET'])
def audit_history(identity_id):
    return jsonify(ranking_service.history(identity_id))
