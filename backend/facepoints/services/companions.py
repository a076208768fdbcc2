from typing import Optional

from flask import current_app

from facepoints import db
from facepoints.clock import now
from facepoints.errors import AlreadyHasCompanion, EnrollmentConflict, IdentityNotFound, InvalidRequest
from facepoints.models import CompanionLink, Identity
from facepoints.services.identity import EnrollmentProfile, get_directory, get_identity


def _link_exists(principal_id: int) -> bool:
    return CompanionLink.query.filter_by(principal_id=principal_id).first() is not None


def link(principal_id: int, companion_photo: bytes, companion_profile: EnrollmentProfile) -> Identity:
    """Enroll a companion for ``principal_id`` and bind the two.

    The companion Identity and its link are written in one transaction; a
    principal racing to add a second companion loses on the unique
    ``principal_id`` and gets ``AlreadyHasCompanion``.
    """
    principal = get_identity(principal_id)
    if principal is None:
        raise IdentityNotFound()
    if principal.is_companion:
        raise InvalidRequest('A companion cannot register a companion')
    if _link_exists(principal.id):
        raise AlreadyHasCompanion()

    principal_key = principal.id

    def _attach(companion: Identity) -> None:
        db.session.add(CompanionLink(principal_id=principal_key, companion_id=companion.id, created_at=now()))
        db.session.flush()

    try:
        companion = get_directory().enroll(
            companion_photo, companion_profile, is_companion=True, before_commit=_attach
        )
    except EnrollmentConflict:
        if _link_exists(principal_key):
            raise AlreadyHasCompanion()
        raise

    current_app.logger.info(f"[companion-link] principal={principal_key} companion={companion.id}")
    return companion


def resolve_principal(identity_id: int) -> Optional[Identity]:
    """Return the principal ``identity_id`` is a companion of, if any."""
    row = CompanionLink.query.filter_by(companion_id=identity_id).first()
    return row.principal if row else None


def companion_of(principal_id: int) -> Optional[Identity]:
    row = CompanionLink.query.filter_by(principal_id=principal_id).first()
    return row.companion if row else None
