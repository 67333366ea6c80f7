"""
Reorder-point scan for finished goods and raw materials.

Usage:
    python manage.py check_reorder_points          # Human readable report
    python manage.py check_reorder_points --json   # Machine readable output
"""

import json
import logging

from django.core.management.base import BaseCommand

from stock.services import ReorderService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'List products and raw materials whose available stock is below their reorder point'

    def add_arguments(self, parser):
        parser.add_argument('--json', action='store_true', help='Print the scan result as JSON')

    def handle(self, *args, **options):
        result = ReorderService.scan()
        logger.info(
            f"Reorder scan: {len(result['products'])} product(s), "
            f"{len(result['materials'])} material(s) below reorder point"
        )

        if options['json']:
            self.stdout.write(json.dumps(result, indent=2))
            return

        if not result['total']:
            self.stdout.write(self.style.SUCCESS('All stock is above reorder points'))
            return

        if result['products']:
            self.stdout.write(self.style.WARNING('Products below reorder point:'))
            for item in result['products']:
                self.stdout.write(
                    f"  {item['sku']:<20} available {item['available']:>12}  "
                    f"reorder at {item['reorder_point']:>12}  make {item['suggested_quantity']}"
                )

        if result['materials']:
            self.stdout.write(self.style.WARNING('Raw materials below reorder point:'))
            for item in result['materials']:
                vendor = item['preferred_vendor'] or 'no preferred vendor'
                self.stdout.write(
                    f"  {item['sku']:<20} available {item['available']:>12}  "
                    f"reorder at {item['reorder_point']:>12}  buy {item['suggested_quantity']} ({vendor})"
                )
