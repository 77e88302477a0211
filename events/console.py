"""
Door-operator console for a single event.

Holds only the UI flow (IDLE -> SCANNED -> CONFIRMING -> COMMITTING -> RESULT).
Whether a ticket is checked in is always read back from the API; the
console never treats its own state as the source of truth.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from .utils import parse_scanned_code

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error, please scan again"


class ConsoleState(enum.Enum):
    IDLE = 'idle'
    SCANNED = 'scanned'
    CONFIRMING = 'confirming'
    COMMITTING = 'committing'
    RESULT = 'result'


class ConsoleStateError(RuntimeError):
    pass


@dataclass
class ScannedTicket:
    ticket_code: str
    name: str
    email: str
    is_checked_in: bool
    check_in_date: Optional[str] = None

    @property
    def action(self):
        return 'uncheck-in' if self.is_checked_in else 'check-in'


@dataclass
class ConsoleResult:
    ok: bool
    message: str
    code: Optional[str] = None


class CheckInConsole:
    def __init__(self, base_url, event_id, session=None, token=None, timeout=10):
        self.base_url = base_url.rstrip('/')
        self.event_id = str(event_id)
        self.session = session or requests.Session()
        self.timeout = timeout
        if token:
            self.session.headers.update({'Authorization': f'Bearer {token}'})

        self.state = ConsoleState.IDLE
        self.scanned = None
        self.result = None

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def _expect(self, *states):
        if self.state not in states:
            allowed = ', '.join(s.name for s in states)
            raise ConsoleStateError(f"Console is {self.state.name}, expected one of: {allowed}")

    def _finish(self, ok, message, code=None):
        self.result = ConsoleResult(ok=ok, message=message, code=code)
        self.state = ConsoleState.RESULT
        return self.result

    def _call(self, method, path, **kwargs):
        """
        One API round trip. Returns (status, body), or None when the API could
        not be reached or answered with something other than JSON.
        """
        try:
            response = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error(f"{method} {path} failed: {exc}")
            return None

        try:
            body = response.json()
        except ValueError:
            logger.error(f"{method} {path} returned a non-JSON body ({response.status_code})")
            return None
        if not isinstance(body, dict):
            body = {'data': body}
        return response.status_code, body

    def _network_error(self):
        return self._finish(False, NETWORK_ERROR_MESSAGE, 'NETWORK_ERROR')

    def _load_ticket(self, code):
        reply = self._call('GET', f"ticket/verify/{code}", params={'eventId': self.event_id})
        if reply is None:
            return self._network_error()

        status_code, body = reply
        if status_code != 200 or not body.get('valid'):
            logger.info(f"Scan rejected ({status_code}): {body.get('message')}")
            return self._finish(False, body.get('message', 'Invalid ticket'), body.get('code'))

        self.scanned = ScannedTicket(
            ticket_code=code,
            name=body['user']['fullName'],
            email=body['user']['email'],
            is_checked_in=body['isCheckedIn'],
            check_in_date=body.get('checkInDate'),
        )
        self.state = ConsoleState.SCANNED
        return self.scanned

    def scan(self, raw):
        """Feed whatever the QR reader produced."""
        self._expect(ConsoleState.IDLE, ConsoleState.RESULT)
        self.scanned = None
        code = parse_scanned_code(raw)
        if code is None:
            return self._finish(False, 'Unreadable QR code', 'INVALID_TICKET_CODE')
        return self._load_ticket(code)

    def select_attendee(self, attendee_id):
        """Manual lookup from the attendee list."""
        self._expect(ConsoleState.IDLE, ConsoleState.RESULT)
        self.scanned = None
        reply = self._call('GET', f"event/{self.event_id}/attendee/{attendee_id}/ticket")
        if reply is None:
            return self._network_error()

        status_code, body = reply
        if status_code != 200 or 'ticketCode' not in body:
            return self._finish(False, body.get('message', 'Attendee has no ticket'), body.get('code'))
        return self._load_ticket(body['ticketCode'])

    def confirm(self):
        """Open the confirmation dialog for the scanned ticket; returns the pending action."""
        self._expect(ConsoleState.SCANNED)
        self.state = ConsoleState.CONFIRMING
        return self.scanned.action

    def cancel(self):
        self.scanned = None
        self.result = None
        self.state = ConsoleState.IDLE

    def commit(self):
        self._expect(ConsoleState.CONFIRMING)
        self.state = ConsoleState.COMMITTING
        action = self.scanned.action

        reply = self._call('POST', f"event/{self.event_id}/{action}", json={'ticketCode': self.scanned.ticket_code})
        if reply is None:
            return self._network_error()

        status_code, body = reply
        if status_code == 200:
            return self._finish(True, body.get('message', 'Done'))
        return self._finish(False, body.get('message', 'Request failed'), body.get('code'))

    def counts(self):
        """Live totals, or None when the API could not be reached."""
        reply = self._call('GET', f"event/{self.event_id}/counts")
        if reply is None or reply[0] != 200:
            return None
        return reply[1]
