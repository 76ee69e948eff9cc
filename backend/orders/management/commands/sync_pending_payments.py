"""
Management command to sync every pending order with the Razorpay gateway
Usage: python manage.py sync_pending_payments [--limit N] [--verbose]
"""
from django.core.management.base import BaseCommand, CommandError

from backend.orders.models import Order
from backend.orders.payments import PaymentError, get_payment_adapter


class Command(BaseCommand):
    help = 'Refresh the payment status of pending orders from the payment gateway'

    def add_arguments(self, parser):
        parser.add_argument(
            '--limit',
            type=int,
            help='Limit the number of orders to process',
        )
        parser.add_argument(
            '--verbose',
            action='store_true',
            help='Show the outcome for each order',
        )

    def handle(self, *args, **options):
        limit = options.get('limit')
        verbose = options['verbose']

        adapter = get_payment_adapter()
        try:
            adapter.load()
        except PaymentError as e:
            raise CommandError(str(e))

        self.stdout.write(self.style.SUCCESS('Syncing pending payments with Razorpay...\n'))

        orders_query = Order.objects.filter(
            payment_status='pending'
        ).exclude(
            gateway_order_id=''
        ).order_by('created_at')

        if limit:
            orders_query = orders_query[:limit]

        orders = list(orders_query)
        total_orders = len(orders)

        if total_orders == 0:
            self.stdout.write(self.style.SUCCESS('✓ No pending orders to sync.'))
            return

        self.stdout.write(f'Found {total_orders} pending order(s).\n')

        updated_count = 0
        unchanged_count = 0
        error_count = 0

        for order in orders:
            try:
                result = adapter.check_payment_status(order)
            except PaymentError as e:
                error_count += 1
                self.stdout.write(self.style.ERROR(f'  ✗ Error syncing order {order.short_id}: {e}'))
                continue

            if result['updated']:
                updated_count += 1
                if verbose:
                    self.stdout.write(self.style.SUCCESS(
                        f"  ✓ Order {order.short_id}: {result['gateway_status']} -> "
                        f"{result['status']}/{result['payment_status']}"
                    ))
            else:
                unchanged_count += 1
                if verbose:
                    self.stdout.write(f"  Order {order.short_id} unchanged ({result['gateway_status']})")

        self.stdout.write('\n' + '=' * 60)
        self.stdout.write(self.style.SUCCESS('Summary:'))
        self.stdout.write(f'  Total orders processed: {total_orders}')
        self.stdout.write(f'  Orders updated: {updated_count}')
        self.stdout.write(f'  Orders unchanged: {unchanged_count}')
        if error_count > 0:
            self.stdout.write(self.style.ERROR(f'  Errors: {error_count}'))
