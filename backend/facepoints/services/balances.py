from typing import Optional, Tuple

from sqlalchemy import select, update

from facepoints import db
from facepoints.models import CompanionLink, Identity


def _increment(identity_id: int, amount: int) -> None:
    db.session.execute(
        update(Identity)
        .where(Identity.id == identity_id)
        .values(point_balance=Identity.point_balance + amount)
        .execution_options(synchronize_session=False)
    )


def credit_points(identity_id: int, amount: int) -> Tuple[int, Optional[int]]:
    """Add ``amount`` to an identity and, for a companion, to its principal.

    Both increments are in-place SQL updates inside the caller's transaction;
    the caller commits or rolls back the award as one unit. Returns the
    identity's new balance and the principal id the points were mirrored to.
    """
    _increment(identity_id, amount)
    principal_id = db.session.execute(
        select(CompanionLink.principal_id).where(CompanionLink.companion_id == identity_id)
    ).scalar_one_or_none()
    if principal_id is not None and principal_id != identity_id:
        _increment(principal_id, amount)
    else:
        principal_id = None
    new_balance = db.session.execute(
        select(Identity.point_balance).where(Identity.id == identity_id)
    ).scalar_one()
    return new_balance, principal_id
