import click
from flask import current_app
from services.file_service import FileService


def register_commands(app):
    @app.cli.command('purge-blobs')
    @click.option('--dry-run', is_flag=True, help='Show what would be removed without removing')
    @click.option('--batch-size', default=1000, show_default=True, help='Max files to process')
    def purge_blobs(dry_run, batch_size):
        """Remove stored blobs of soft-deleted files."""
        service = FileService(current_app.extensions['backend'])
        purged, failed = service.purge_deleted_blobs(batch_size=batch_size, dry_run=dry_run)
        if dry_run:
            click.echo(f'Would purge {purged} blobs')
        else:
            click.echo(f'Purged {purged} blobs, {failed} failed')
