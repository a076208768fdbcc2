from flask_socketio import join_room, leave_room, emit
from facepoints import socketio

RANKING_ROOM = 'ranking'
NAMESPACE = '/ws'


def _contest_room(code: str) -> str:
    return f"contest:{code.upper()}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_ranking(data=None):
    join_room(RANKING_ROOM)
    emit('joined', {'room': RANKING_ROOM})


def handle_watch_contest(data):
    code = (data or {}).get('code')
    if not code:
        emit('error', {'message': 'code is required'})
        return
    room = _contest_room(code)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave(data):
    room = (data or {}).get('room')
    if not room:
        emit('error', {'message': 'room is required'})
        return
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def broadcast_award(identity_id: int, points: int, principal_id=None) -> None:
    """Tell ranking screens that balances moved."""
    socketio.emit(
        'ranking_update',
        {'identity_id': identity_id, 'points': points, 'principal_id': principal_id},
        to=RANKING_ROOM,
        namespace=NAMESPACE,
    )


def broadcast_contest_closed(code: str, winner_name: str) -> None:
    socketio.emit(
        'contest_closed',
        {'code': code, 'winner_name': winner_name},
        to=_contest_room(code),
        namespace=NAMESPACE,
    )


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('join_ranking', handle_join_ranking, namespace=NAMESPACE)
    socketio.on_event('watch_contest', handle_watch_contest, namespace=NAMESPACE)
    socketio.on_event('leave', handle_leave, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
