from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required
from facepoints.clock import now
from facepoints.models import Operator, isoformat
from facepoints.services.identity import get_directory

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the facepoints contest server!'})

@main.route('/health')
def health():
    return jsonify({
        'status': 'ok',
        'time': isoformat(now()),
        'recognition': 'available' if get_directory().available else 'disabled',
    })

@main.route('/operators/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    operator = Operator.query.filter_by(username=data.get('username')).first()
    if operator and operator.check_password(data.get('password') or ''):
        login_user(operator, remember=True)
        return jsonify({'message': 'Logged in successfully.', 'operator': operator.to_dict()})
    return jsonify({'error': 'invalid_credentials', 'message': 'Invalid username or password'}), 401

@main.route('/operators/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})
