from datetime import datetime

from flask import current_app
from sqlalchemy import func, select

from facepoints import db


class StorageClock:
    """Reads "now" from the database so every request shares one clock.

    Values are naive datetimes in UTC, matching how the models store them.
    """

    def now(self) -> datetime:
        dialect = db.engine.dialect.name
        if dialect == 'sqlite':
            raw = db.session.execute(select(func.strftime('%Y-%m-%d %H:%M:%f', 'now'))).scalar_one()
            return datetime.strptime(raw, '%Y-%m-%d %H:%M:%S.%f')
        if dialect == 'postgresql':
            value = db.session.execute(select(func.timezone('UTC', func.clock_timestamp()))).scalar_one()
        elif dialect in ('mysql', 'mariadb'):
            value = db.session.execute(select(func.utc_timestamp(6))).scalar_one()
        else:
            value = db.session.execute(select(func.current_timestamp())).scalar_one()
        return value.replace(tzinfo=None)


def now() -> datetime:
    return current_app.extensions['clock'].now()
