"""
Django management command to run the chat relay.

Verifies that the document store is reachable, then serves the ASGI app
with daphne. Request threads open their own connections, which Django
keeps per thread (CONN_MAX_AGE) and health-checks before reuse.

Usage:
    python manage.py serve [--host 0.0.0.0] [--port 5000]
"""
import logging

from daphne.cli import CommandLineInterface
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError, connections

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Run the RAG chat relay'

    def add_arguments(self, parser):
        parser.add_argument(
            '--host',
            default=None,
            help='Interface to bind (default: settings.HOST)',
        )
        parser.add_argument(
            '--port',
            type=int,
            default=None,
            help='Port to listen on (default: settings.PORT)',
        )
        parser.add_argument(
            '--skip-db-check',
            action='store_true',
            help='Start without checking that the document store is reachable',
        )

    def check_document_store(self):
        """Connect once from this thread, then release the connection."""
        connection = connections['default']
        try:
            connection.ensure_connection()
        except DatabaseError as e:
            raise CommandError(f"Could not connect to document store: {e}")
        logger.info(f"Document store is reachable ({connection.vendor})")
        # Only used for the check; request threads hold their own connections
        connection.close()

    def handle(self, *args, **options):
        host = options['host'] or settings.HOST
        port = options['port'] or settings.PORT

        if not options['skip_db_check']:
            self.check_document_store()

        self.stdout.write(self.style.SUCCESS(f'RAG backend running on port {port}'))
        CommandLineInterface().run([
            '--bind', host,
            '--port', str(port),
            'config.asgi:application',
        ])
