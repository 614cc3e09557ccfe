"""
Projector worker: drains the outbox into the read models.
"""
import time

from django.core.management.base import BaseCommand

from fulfillment.conf import get_setting
from fulfillment.infra.projector import Projector


class Command(BaseCommand):
    help = 'Apply pending outbox events to OrderSummary and CustomerReceivable'

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, help='Events per batch (default: OUTBOX_BATCH_SIZE)')
        parser.add_argument('--loop', action='store_true', help='Keep polling until interrupted')
        parser.add_argument('--interval', type=int, default=3, help='Seconds between polls in loop mode')

    def handle(self, *args, **options):
        projector = Projector()
        batch = dict(
            limit=options['limit'] or get_setting("OUTBOX_BATCH_SIZE"),
            max_retries=get_setting("OUTBOX_MAX_RETRIES"),
        )

        if not options['loop']:
            self._report(projector.process_outbox_events(**batch))
            return

        self.stdout.write(f"Polling outbox every {options['interval']}s")
        try:
            while True:
                processed = projector.process_outbox_events(**batch)
                if processed:
                    self._report(processed)
                time.sleep(options['interval'])
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING('Stopped by user'))

    def _report(self, processed: int) -> None:
        self.stdout.write(self.style.SUCCESS(f'Processed {processed} events'))
