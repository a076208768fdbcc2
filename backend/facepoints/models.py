from facepoints import db, bcrypt
from flask_login import UserMixin
import string
import random

# Contest modes
SINGLE_WINNER = 'single_winner'
ONE_PER_USER = 'one_per_user'
UNLIMITED_REPEATABLE = 'unlimited_repeatable'
CONTEST_MODES = (SINGLE_WINNER, ONE_PER_USER, UNLIMITED_REPEATABLE)

ANSWER_LABELS = ('A', 'B', 'C', 'D')


def isoformat(value):
    """Render a naive UTC timestamp as ISO-8601 with a Z suffix."""
    if value is None:
        return None
    return value.isoformat() + 'Z'


class Operator(UserMixin, db.Model):
    __tablename__ = 'operator'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class EmployeeCode(db.Model):
    """Roster of employee codes allowed to enroll."""
    __tablename__ = 'employee_code'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, nullable=False, index=True)
    holder_name = db.Column(db.String(128), nullable=True)
    active = db.Column(db.Boolean, default=True, nullable=False)


class Identity(db.Model):
    __tablename__ = 'identity'
    __table_args__ = (
        db.CheckConstraint('point_balance >= 0', name='ck_identity_point_balance'),
    )
    id = db.Column(db.Integer, primary_key=True)
    biometric_ref = db.Column(db.String(64), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    employee_code = db.Column(db.String(32), unique=True, nullable=True, index=True)
    photo_ref = db.Column(db.String(512), nullable=True)
    point_balance = db.Column(db.Integer, default=0, nullable=False)
    is_companion = db.Column(db.Boolean, default=False, nullable=False)
    active = db.Column(db.Boolean, default=True, nullable=False)
    enrolled_at = db.Column(db.DateTime, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'display_name': self.display_name,
            'email': self.email,
            'phone': self.phone,
            'employee_code': self.employee_code,
            'point_balance': self.point_balance,
            'is_companion': self.is_companion,
            'enrolled_at': isoformat(self.enrolled_at),
        }


class CompanionLink(db.Model):
    __tablename__ = 'companion_link'
    __table_args__ = (
        db.CheckConstraint('principal_id <> companion_id', name='ck_companion_link_distinct'),
    )
    id = db.Column(db.Integer, primary_key=True)
    principal_id = db.Column(db.Integer, db.ForeignKey('identity.id'), unique=True, nullable=False)
    companion_id = db.Column(db.Integer, db.ForeignKey('identity.id'), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)

    principal = db.relationship('Identity', foreign_keys=[principal_id])
    companion = db.relationship('Identity', foreign_keys=[companion_id])


class ParticipantSession(db.Model):
    __tablename__ = 'participant_session'
    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    identity_id = db.Column(db.Integer, db.ForeignKey('identity.id'), nullable=False, index=True)
    issued_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    def to_dict(self):
        return {
            'token': self.token,
            'identity_id': self.identity_id,
            'issued_at': isoformat(self.issued_at),
            'expires_at': isoformat(self.expires_at),
        }


def generate_contest_code(length=6):
    """Generate a unique, short contest code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Contest.query.filter_by(code=code).first():
            return code


class Contest(db.Model):
    __tablename__ = 'contest'
    __table_args__ = (
        db.CheckConstraint('points_awarded >= 0', name='ck_contest_points_awarded'),
    )
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    points_awarded = db.Column(db.Integer, nullable=False)
    mode = db.Column(db.String(32), default=ONE_PER_USER, nullable=False) # single_winner, one_per_user, unlimited_repeatable
    active = db.Column(db.Boolean, default=True, nullable=False)
    participations = db.relationship(
        'Participation', back_populates='contest', lazy='dynamic', foreign_keys='Participation.contest_id'
    )

    def __init__(self, **kwargs):
        super(Contest, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_contest_code()

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'description': self.description,
            'points_awarded': self.points_awarded,
            'mode': self.mode,
            'active': self.active,
        }


class Participation(db.Model):
    __tablename__ = 'participation'
    __table_args__ = (
        db.UniqueConstraint('identity_id', 'contest_id', name='uq_participation_identity_contest'),
    )
    id = db.Column(db.Integer, primary_key=True)
    identity_id = db.Column(db.Integer, db.ForeignKey('identity.id'), nullable=False, index=True)
    contest_id = db.Column(db.Integer, db.ForeignKey('contest.id'), nullable=False, index=True)
    # Set to contest_id only for single-winner contests, so at most one row can win
    exclusive_contest_id = db.Column(db.Integer, db.ForeignKey('contest.id'), unique=True, nullable=True)
    points_awarded = db.Column(db.Integer, nullable=False)
    award_count = db.Column(db.Integer, default=1, nullable=False)
    match_confidence = db.Column(db.Float, nullable=True)
    awarded_at = db.Column(db.DateTime, nullable=False)

    identity = db.relationship('Identity')
    contest = db.relationship('Contest', foreign_keys=[contest_id], back_populates='participations')

    def to_dict(self):
        return {
            'id': self.id,
            'identity_id': self.identity_id,
            'contest_id': self.contest_id,
            'points_awarded': self.points_awarded,
            'award_count': self.award_count,
            'match_confidence': self.match_confidence,
            'awarded_at': isoformat(self.awarded_at),
        }


class Trivia(db.Model):
    __tablename__ = 'trivia'
    __table_args__ = (
        db.CheckConstraint('points_max >= points_min', name='ck_trivia_points_order'),
        db.CheckConstraint('points_min >= 0', name='ck_trivia_points_min'),
        db.CheckConstraint('window_end > window_start', name='ck_trivia_window'),
    )
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    window_start = db.Column(db.DateTime, nullable=False, index=True)
    window_end = db.Column(db.DateTime, nullable=False)
    points_max = db.Column(db.Integer, nullable=False)
    points_min = db.Column(db.Integer, nullable=False)
    active = db.Column(db.Boolean, default=True, nullable=False)
    questions = db.relationship('Question', back_populates='trivia', order_by='Question.position')

    def state_at(self, now):
        if now < self.window_start:
            return 'upcoming'
        if now > self.window_end:
            return 'finished'
        return 'active'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'window_start': isoformat(self.window_start),
            'window_end': isoformat(self.window_end),
            'points_max': self.points_max,
            'points_min': self.points_min,
            'active': self.active,
        }


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    trivia_id = db.Column(db.Integer, db.ForeignKey('trivia.id'), nullable=False, index=True)
    position = db.Column(db.Integer, default=0, nullable=False)
    prompt = db.Column(db.Text, nullable=False)
    option_a = db.Column(db.String(255), nullable=False)
    option_b = db.Column(db.String(255), nullable=False)
    option_c = db.Column(db.String(255), nullable=False)
    option_d = db.Column(db.String(255), nullable=False)
    correct_label = db.Column(db.String(1), nullable=False)
    trivia = db.relationship('Trivia', back_populates='questions')

    def to_dict(self, include_answer=False):
        payload = {
            'id': self.id,
            'trivia_id': self.trivia_id,
            'position': self.position,
            'prompt': self.prompt,
            'options': {
                'A': self.option_a,
                'B': self.option_b,
                'C': self.option_c,
                'D': self.option_d,
            },
        }
        if include_answer:
            payload['correct_label'] = self.correct_label
        return payload


class TriviaResponse(db.Model):
    __tablename__ = 'trivia_response'
    __table_args__ = (
        db.UniqueConstraint('identity_id', 'trivia_id', name='uq_trivia_response_identity_trivia'),
    )
    id = db.Column(db.Integer, primary_key=True)
    identity_id = db.Column(db.Integer, db.ForeignKey('identity.id'), nullable=False, index=True)
    trivia_id = db.Column(db.Integer, db.ForeignKey('trivia.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    chosen_label = db.Column(db.String(1), nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False)
    points_awarded = db.Column(db.Integer, nullable=False)
    answered_at = db.Column(db.DateTime, nullable=False)

    identity = db.relationship('Identity')
    trivia = db.relationship('Trivia')

    def to_dict(self):
        return {
            'id': self.id,
            'identity_id': self.identity_id,
            'trivia_id': self.trivia_id,
            'question_id': self.question_id,
            'chosen_label': self.chosen_label,
            'is_correct': self.is_correct,
            'points_awarded': self.points_awarded,
            'answered_at': isoformat(self.answered_at),
        }
