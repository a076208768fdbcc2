"""Time-scored trivia.

A trivia's value decays linearly from ``points_max`` at ``window_start`` to
``points_min`` at ``window_end``. The score depends only on the storage clock
at submission, not on anything the client reports.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from facepoints import db
from facepoints.clock import now
from facepoints.errors import IdentityNotFound, InvalidRequest
from facepoints.models import ANSWER_LABELS, Question, Trivia, TriviaResponse, isoformat
from facepoints.services import outcomes
from facepoints.services.balances import credit_points
from facepoints.services.identity import get_identity
from facepoints.socketio_events import broadcast_award


def score_at(window_start: datetime, window_end: datetime, points_max: int, points_min: int,
             at: datetime) -> Optional[int]:
    """Points a correct answer earns at ``at``; ``None`` outside the window."""
    if at < window_start or at > window_end:
        return None
    span = (window_end - window_start).total_seconds()
    elapsed = (at - window_start).total_seconds() / span if span > 0 else 1.0
    raw = points_max - (points_max - points_min) * elapsed
    # Round half up, and never step outside [points_min, points_max]
    return max(points_min, min(points_max, int(math.floor(raw + 0.5))))


def current_score(trivia: Trivia, at: datetime) -> Optional[int]:
    return score_at(trivia.window_start, trivia.window_end, trivia.points_max, trivia.points_min, at)


@dataclass
class TriviaView:
    trivia_id: int
    name: str
    current_score: int
    already_answered: bool
    window_end: datetime
    points_min: int
    questions: List[dict] = field(default_factory=list)

    def to_dict(self):
        return {
            'trivia_id': self.trivia_id,
            'name': self.name,
            'current_score': self.current_score,
            'already_answered': self.already_answered,
            'window_end': isoformat(self.window_end),
            'points_min': self.points_min,
            'questions': self.questions,
        }


def find_active_trivia(at: datetime) -> Optional[Trivia]:
    return (
        Trivia.query
        .filter(Trivia.active.is_(True), Trivia.window_start <= at, Trivia.window_end >= at)
        .order_by(Trivia.window_start.desc(), Trivia.id.desc())
        .first()
    )


def get_active_trivia(identity_id: Optional[int]) -> Optional[TriviaView]:
    """The trivia open right now, with its advisory score for display."""
    at = now()
    trivia = find_active_trivia(at)
    if trivia is None:
        return None
    answered = False
    if identity_id is not None:
        answered = TriviaResponse.query.filter_by(identity_id=identity_id, trivia_id=trivia.id).first() is not None
    return TriviaView(
        trivia_id=trivia.id,
        name=trivia.name,
        current_score=current_score(trivia, at),
        already_answered=answered,
        window_end=trivia.window_end,
        points_min=trivia.points_min,
        questions=[q.to_dict() for q in trivia.questions],
    )


def answer(identity_id: int, trivia_id: int, question_id: int, chosen_label: str) -> outcomes.AnswerOutcome:
    """Record the identity's single answer for a trivia and credit its points.

    A wrong answer still earns ``points_min``; a correct one earns the
    decayed score at submission time.
    """
    label = chosen_label.strip().upper() if isinstance(chosen_label, str) else None
    if label not in ANSWER_LABELS:
        raise InvalidRequest('The answer must be one of A, B, C or D')
    identity = get_identity(identity_id)
    if identity is None:
        raise IdentityNotFound()

    trivia = db.session.get(Trivia, trivia_id)
    if trivia is None:
        return outcomes.AnswerOutcome(outcomes.TRIVIA_NOT_FOUND, trivia_id=trivia_id)
    if not trivia.active:
        return outcomes.AnswerOutcome(outcomes.TRIVIA_INACTIVE, trivia_id=trivia_id)

    previous = TriviaResponse.query.filter_by(identity_id=identity.id, trivia_id=trivia.id).first()
    if previous is not None:
        return _already_answered(previous)

    question = db.session.get(Question, question_id) if question_id is not None else None
    if question is None or question.trivia_id != trivia.id:
        return outcomes.AnswerOutcome(outcomes.QUESTION_MISMATCH, trivia_id=trivia.id)

    at = now()
    if at < trivia.window_start:
        return outcomes.AnswerOutcome(outcomes.NOT_STARTED, trivia_id=trivia.id)
    if at > trivia.window_end:
        return outcomes.AnswerOutcome(outcomes.CLOSED, trivia_id=trivia.id)

    is_correct = label == question.correct_label
    points = current_score(trivia, at) if is_correct else trivia.points_min
    identity_key, trivia_key, correct_label = identity.id, trivia.id, question.correct_label

    try:
        db.session.add(TriviaResponse(
            identity_id=identity_key,
            trivia_id=trivia_key,
            question_id=question.id,
            chosen_label=label,
            is_correct=is_correct,
            points_awarded=points,
            answered_at=at,
        ))
        db.session.flush()
        new_balance, principal_id = credit_points(identity_key, points)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        previous = TriviaResponse.query.filter_by(identity_id=identity_key, trivia_id=trivia_key).first()
        if previous is None:
            raise
        current_app.logger.info(f"[trivia-repeat] identity={identity_key} trivia={trivia_key}")
        return _already_answered(previous)
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"[trivia-answer] identity={identity_key} trivia={trivia_key} correct={is_correct} "
        f"points={points} balance={new_balance} principal={principal_id}"
    )
    broadcast_award(identity_key, points, principal_id)
    return outcomes.AnswerOutcome(
        outcomes.SUCCESS,
        trivia_id=trivia_key,
        is_correct=is_correct,
        correct_label=correct_label,
        points_awarded=points,
        new_balance=new_balance,
        answered_at=at,
    )


def _already_answered(previous: TriviaResponse) -> outcomes.AnswerOutcome:
    return outcomes.AnswerOutcome(
        outcomes.ALREADY_ANSWERED,
        trivia_id=previous.trivia_id,
        is_correct=previous.is_correct,
        points_awarded=previous.points_awarded,
        answered_at=previous.answered_at,
    )


def create_trivia(name, window_start, window_end, points_max, points_min, questions, description=None):
    """Create a trivia with its ordered questions (operator action)."""
    if not name:
        raise InvalidRequest('A trivia name is required')
    if window_end <= window_start:
        raise InvalidRequest('window_end must be after window_start')
    if points_min < 0 or points_max < points_min:
        raise InvalidRequest('Points must satisfy points_max >= points_min >= 0')
    if not questions:
        raise InvalidRequest('At least one question is required')
    if not isinstance(questions, list) or not all(isinstance(item, dict) for item in questions):
        raise InvalidRequest('questions must be a list of objects')
    built = []
    for position, item in enumerate(questions):
        options = item.get('options') or {}
        if not isinstance(options, dict):
            raise InvalidRequest('options must map A-D to their text')
        correct = str(item.get('correct_label') or '').strip().upper()
        texts = [item.get('prompt')] + [options.get(lbl) for lbl in ANSWER_LABELS]
        if not all(isinstance(text, str) and text for text in texts):
            raise InvalidRequest('Each question needs a prompt and options A-D')
        if correct not in ANSWER_LABELS:
            raise InvalidRequest('correct_label must be one of A, B, C or D')
        built.append(Question(
            position=position,
            prompt=item['prompt'],
            option_a=options['A'],
            option_b=options['B'],
            option_c=options['C'],
            option_d=options['D'],
            correct_label=correct,
        ))
    trivia = Trivia(
        name=name,
        description=description,
        window_start=window_start,
        window_end=window_end,
        points_max=points_max,
        points_min=points_min,
        active=True,
        questions=built,
    )
    db.session.add(trivia)
    db.session.commit()
    return trivia
