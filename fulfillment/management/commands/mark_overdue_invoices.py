"""
Management command to flag unsettled invoices past their due date.
"""
from django.core.management.base import BaseCommand

from fulfillment.services.invoices import InvoiceService


class Command(BaseCommand):
    help = 'Mark unpaid invoices past their due date as OVERDUE'

    def handle(self, *args, **options):
        flagged = InvoiceService().mark_overdue()
        self.stdout.write(self.style.SUCCESS(f'Marked {flagged} invoices overdue'))
