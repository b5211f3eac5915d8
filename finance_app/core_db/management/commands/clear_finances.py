from django.core.management.base import BaseCommand

from finance_app.core_db.models import Finance


class Command(BaseCommand):
    help = 'Hard-delete finance records (all of them, or only the soft-deleted ones)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--deleted-only',
            action='store_true',
            help='Delete only finances already marked as deleted',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without actually deleting',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        if dry_run:
            self.stdout.write(self.style.WARNING(
                'DRY RUN - No data will be deleted'))

        queryset = Finance.objects.all()
        if options['deleted_only']:
            queryset = queryset.filter(deleted=True)

        count = queryset.count()
        if count == 0:
            self.stdout.write('No Finance records to delete')
            return

        if not dry_run:
            queryset.delete()
        self.stdout.write(
            self.style.SUCCESS(
                f'{"Would delete" if dry_run else "Deleted"} {count} Finance records')
        )
