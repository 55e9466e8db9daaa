from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand

from core.store import build_store
from finances.services import SchoolLedger


class Command(BaseCommand):
    help = 'Check every fee balance and status against its amounts'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Re-save out-of-line fees so balance and status are recomputed',
        )
        parser.add_argument(
            '--storage',
            default=None,
            help='Storage backend to audit (defaults to LEDGER_STORAGE)',
        )

    def handle(self, *args, **options):
        ledger = SchoolLedger(build_store(options['storage']))
        violations = ledger.fees.audit()

        if not violations:
            self.stdout.write(self.style.SUCCESS('All fees are consistent'))
            return

        for violation in violations:
            self.stdout.write(self.style.WARNING(str(violation)))

        if not options['fix']:
            self.stdout.write(
                self.style.ERROR(f'{len(violations)} fee(s) out of line; run with --fix to repair')
            )
            return

        repaired = 0
        for violation in violations:
            try:
                ledger.save_fee(ledger.get_fee(violation.fee_id))
            except ValidationError as exc:
                self.stdout.write(self.style.ERROR(
                    f'Could not repair fee {violation.fee_id!r}: {"; ".join(exc.messages)}'
                ))
                continue
            repaired += 1

        self.stdout.write(
            self.style.SUCCESS(f'Repaired {repaired} fee(s)')
        )
