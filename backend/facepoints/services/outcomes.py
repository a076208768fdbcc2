"""Structured results of award attempts.

Losing a race, repeating a single-use contest or answering a trivia twice are
ordinary results the caller renders as informational states, so they are
returned rather than raised.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from facepoints.models import isoformat

# Contest participation
SUCCESS = 'success'
ALREADY_WON = 'already_won'
ALREADY_PARTICIPATED = 'already_participated'
CONTEST_EXHAUSTED = 'contest_exhausted'
NOT_REGISTERED = 'not_registered'
CONTEST_NOT_FOUND = 'contest_not_found'

# Trivia answers
TRIVIA_NOT_FOUND = 'trivia_not_found'
TRIVIA_INACTIVE = 'trivia_inactive'
ALREADY_ANSWERED = 'already_answered'
QUESTION_MISMATCH = 'question_mismatch'
NOT_STARTED = 'not_started'
CLOSED = 'closed'


@dataclass
class ParticipationOutcome:
    status: str
    identity_id: Optional[int] = None
    display_name: Optional[str] = None
    contest_code: Optional[str] = None
    points_awarded: int = 0
    new_balance: Optional[int] = None
    match_confidence: Optional[float] = None
    awarded_at: Optional[datetime] = None
    winner_name: Optional[str] = None

    @property
    def ok(self):
        return self.status == SUCCESS

    def to_dict(self):
        return {
            'status': self.status,
            'identity_id': self.identity_id,
            'display_name': self.display_name,
            'contest_code': self.contest_code,
            'points_awarded': self.points_awarded,
            'new_balance': self.new_balance,
            'match_confidence': self.match_confidence,
            'awarded_at': isoformat(self.awarded_at),
            'winner_name': self.winner_name,
        }


@dataclass
class AnswerOutcome:
    status: str
    trivia_id: Optional[int] = None
    is_correct: Optional[bool] = None
    correct_label: Optional[str] = None
    points_awarded: int = 0
    new_balance: Optional[int] = None
    answered_at: Optional[datetime] = None

    @property
    def ok(self):
        return self.status == SUCCESS

    def to_dict(self):
        return {
            'status': self.status,
            'trivia_id': self.trivia_id,
            'is_correct': self.is_correct,
            'correct_label': self.correct_label,
            'points_awarded': self.points_awarded,
            'new_balance': self.new_balance,
            'answered_at': isoformat(self.answered_at),
        }
