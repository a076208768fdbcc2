from datetime import timedelta

import click

from facepoints import db
from facepoints.clock import now
from facepoints.services.identity import get_directory


def register_cli(flask_app):

    @flask_app.cli.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from facepoints.models import (
            Contest, EmployeeCode, Operator, ONE_PER_USER, SINGLE_WINNER, UNLIMITED_REPEATABLE,
        )
        from facepoints.services.trivia import create_trivia

        db.drop_all()
        db.create_all()

        operator = Operator(username='admin')
        operator.set_password('password')
        db.session.add(operator)
        db.session.add_all([
            Contest(name='Welcome booth', points_awarded=100, mode=ONE_PER_USER),
            Contest(name='First to the stage', points_awarded=500, mode=SINGLE_WINNER),
            Contest(name='Snack bar check-in', points_awarded=10, mode=UNLIMITED_REPEATABLE),
        ])
        db.session.add_all(EmployeeCode(code=f"EMP{n:04d}") for n in range(1, 11))
        db.session.commit()

        start = now()
        create_trivia(
            name='Opening trivia',
            window_start=start,
            window_end=start + timedelta(minutes=10),
            points_max=300,
            points_min=50,
            questions=[{
                'prompt': 'Which planet is known as the red planet?',
                'options': {'A': 'Venus', 'B': 'Mars', 'C': 'Jupiter', 'D': 'Mercury'},
                'correct_label': 'B',
            }],
        )
        click.echo('Database has been reset and seeded!')

    @flask_app.cli.command('create-operator')
    @click.argument('username')
    @click.password_option()
    def create_operator_command(username, password):
        """Adds an operator account that may create contests and trivia."""
        from facepoints.models import Operator
        if Operator.query.filter_by(username=username).first():
            raise click.ClickException(f"Operator {username} already exists")
        operator = Operator(username=username)
        operator.set_password(password)
        db.session.add(operator)
        db.session.commit()
        click.echo(f"Operator {username} created")

    @flask_app.cli.command('recognition-setup')
    def recognition_setup_command():
        """Creates the face collection if it does not exist yet."""
        created = get_directory().oracle.ensure_collection()
        click.echo('Face collection created' if created else 'Face collection already exists')

    @flask_app.cli.command('purge-orphan-faces')
    @click.option('--dry-run', is_flag=True, help='Only report the orphaned faces.')
    def purge_orphan_faces_command(dry_run):
        """Deletes collection faces that no enrolled identity points to."""
        from facepoints.models import Identity
        oracle = get_directory().oracle
        known = {ref for (ref,) in db.session.query(Identity.biometric_ref).all()}
        orphans = [face_id for face_id in oracle.list_face_ids() if face_id not in known]
        click.echo(f"{len(orphans)} orphaned face(s)")
        if orphans and not dry_run:
            oracle.delete_faces(orphans)
            flask_app.logger.warning(f"[purge-faces] deleted={len(orphans)}")
            click.echo('Deleted')

    @flask_app.cli.command('purge-sessions')
    def purge_sessions_command():
        """Deletes expired participant sessions."""
        from facepoints.services.sessions import purge_expired
        click.echo(f"Removed {purge_expired()} expired session(s)")
