import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from flask import current_app

from facepoints import db
from facepoints.clock import now
from facepoints.models import ParticipantSession

VALID = 'valid'
EXPIRED = 'expired'
INVALID = 'invalid'


@dataclass
class SessionCheck:
    status: str
    identity_id: Optional[int] = None

    @property
    def ok(self):
        return self.status == VALID


def _ttl() -> timedelta:
    return timedelta(hours=current_app.config.get('SESSION_TTL_HOURS', 24))


def issue(identity_id: int) -> ParticipantSession:
    """Mint a session for an identity that just matched or enrolled."""
    issued_at = now()
    session = ParticipantSession(
        token=secrets.token_urlsafe(32),
        identity_id=identity_id,
        issued_at=issued_at,
        expires_at=issued_at + _ttl(),
    )
    db.session.add(session)
    db.session.commit()
    return session


def validate(token: Optional[str]) -> SessionCheck:
    """Pure read; an expired session must be discarded by the caller."""
    if not token:
        return SessionCheck(INVALID)
    session = ParticipantSession.query.filter_by(token=token).first()
    if session is None:
        return SessionCheck(INVALID)
    if now() > session.expires_at:
        return SessionCheck(EXPIRED, session.identity_id)
    return SessionCheck(VALID, session.identity_id)


def renew(token: str) -> Optional[ParticipantSession]:
    """Push the expiry to a fresh TTL from now; ``None`` if not renewable."""
    session = ParticipantSession.query.filter_by(token=token).first()
    if session is None:
        return None
    current = now()
    if current > session.expires_at:
        return None
    session.expires_at = current + _ttl()
    db.session.commit()
    return session


def renew_or_issue(token: Optional[str], identity_id: int) -> ParticipantSession:
    """Extend the caller's session after an award, or start one."""
    if token:
        check = validate(token)
        if check.ok and check.identity_id == identity_id:
            renewed = renew(token)
            if renewed is not None:
                return renewed
    return issue(identity_id)


def discard(token: str) -> None:
    ParticipantSession.query.filter_by(token=token).delete()
    db.session.commit()


def purge_expired() -> int:
    removed = ParticipantSession.query.filter(ParticipantSession.expires_at < now()).delete()
    db.session.commit()
    return removed
