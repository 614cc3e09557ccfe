"""
Management command to audit invoices and orders against their source records.
"""
from django.core.management.base import BaseCommand, CommandError

from fulfillment.services.reconciliation import ReconciliationService


class Command(BaseCommand):
    help = 'Check invoice balances and order totals; exits non-zero on discrepancies'

    def handle(self, *args, **options):
        discrepancies = ReconciliationService().audit()
        if not discrepancies:
            self.stdout.write(self.style.SUCCESS('No discrepancies found'))
            return

        for d in discrepancies:
            self.stdout.write(
                f'{d.entity} {d.number} [{d.check}]: expected {d.expected}, found {d.actual}'
            )
        raise CommandError(f'{len(discrepancies)} discrepancies found')
