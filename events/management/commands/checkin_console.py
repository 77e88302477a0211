import os

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from events.console import CheckInConsole, ConsoleState


class Command(BaseCommand):
    help = "Interactive door check-in console for one event (reads QR payloads from stdin)"

    def add_arguments(self, parser):
        parser.add_argument('event_id', help="UUID of the event")
        parser.add_argument('--api-url', default=settings.CHECKIN_API_URL, help="Base URL of the API, e.g. http://localhost:8000/api")
        parser.add_argument('--token', default=os.getenv('CHECKIN_API_TOKEN'), help="JWT access token of a team member")
        parser.add_argument(
            '--yes', action='store_true',
            help="Check in without asking for confirmation (undoing a check-in always asks)",
        )

    def handle(self, *args, **options):
        if not options['token']:
            raise CommandError("An access token is required (--token or CHECKIN_API_TOKEN)")

        console = CheckInConsole(options['api_url'], options['event_id'], token=options['token'])
        self.stdout.write("Scan a ticket, 'a <attendeeId>' for manual lookup, 'c' for counts, 'q' to quit.")

        while True:
            try:
                line = input('> ').strip()
            except EOFError:
                break

            if not line:
                continue
            if line == 'q':
                break
            if line == 'c':
                self._show_counts(console)
                continue

            if line.startswith('a '):
                outcome = console.select_attendee(line[2:].strip())
            else:
                outcome = console.scan(line)

            if console.state == ConsoleState.RESULT:
                self._show_result(console.result)
                console.cancel()
                continue

            self.stdout.write(f"{outcome.name} <{outcome.email}>")
            action = console.confirm()

            if outcome.is_checked_in:
                # A second scan of the same badge must never undo entry on its own.
                self.stdout.write(self.style.WARNING(f"Already checked in at {outcome.check_in_date}"))
                confirmed = self._ask("Undo check-in? [y/N] ")
            else:
                confirmed = options['yes'] or self._ask(f"Confirm {action}? [y/N] ")

            if not confirmed:
                console.cancel()
                self.stdout.write("Cancelled.")
                continue

            self._show_result(console.commit())
            console.cancel()

    def _ask(self, prompt):
        try:
            return input(prompt).strip().lower() == 'y'
        except EOFError:
            return False

    def _show_result(self, result):
        if result.ok:
            self.stdout.write(self.style.SUCCESS(result.message))
        elif result.code in ('ALREADY_CHECKED_IN', 'NOT_CHECKED_IN'):
            self.stdout.write(self.style.WARNING(result.message))
        else:
            self.stdout.write(self.style.ERROR(result.message))

    def _show_counts(self, console):
        counts = console.counts()
        if counts is None:
            self.stdout.write(self.style.ERROR("Could not load counts, check the connection"))
            return
        self.stdout.write(f"{counts['eventName']}: {counts['checkedInCount']} / {counts['totalAttendees']} checked in")
