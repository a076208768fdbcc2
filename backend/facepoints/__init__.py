from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config, oracle=None, photo_store=None, clock=None):
    """Build the Flask app.

    The recognition oracle, photo store and clock are chosen here once and
    stored in ``app.extensions``; pass instances to override the ones the
    config would build (tests inject fakes this way).
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from facepoints.clock import StorageClock
    from facepoints.recognition import build_oracle, build_photo_store
    from facepoints.services.identity import IdentityDirectory

    oracle = oracle if oracle is not None else build_oracle(flask_app.config)
    photo_store = photo_store if photo_store is not None else build_photo_store(flask_app.config)
    flask_app.extensions['clock'] = clock if clock is not None else StorageClock()
    flask_app.extensions['identity_directory'] = IdentityDirectory(
        oracle,
        photo_store,
        threshold=flask_app.config.get('FACE_MATCH_THRESHOLD', 90),
    )
    flask_app.logger.info(f"[startup] recognition={type(oracle).__name__} photos={type(photo_store).__name__}")

    from facepoints.errors import FacepointsError

    @flask_app.errorhandler(FacepointsError)
    def handle_facepoints_error(error):
        return jsonify(error.to_dict()), error.status_code

    from facepoints.main import main
    flask_app.register_blueprint(main)

    from facepoints.api.participants import participants
    flask_app.register_blueprint(participants, url_prefix='/api/participants')

    from facepoints.api.contests import contests
    flask_app.register_blueprint(contests, url_prefix='/api/contests')

    from facepoints.api.trivia import trivia
    flask_app.register_blueprint(trivia, url_prefix='/api/trivia')

    from facepoints.api.ranking import ranking
    flask_app.register_blueprint(ranking, url_prefix='/api')

    from facepoints.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from facepoints.models import Operator

    @login_manager.user_loader
    def load_operator(operator_id):
        return db.session.get(Operator, int(operator_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'unauthorized', 'message': 'Operator login required'}), 401

    from facepoints.cli import register_cli
    register_cli(flask_app)

    return flask_app
