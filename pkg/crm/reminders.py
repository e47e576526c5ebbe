"""
Reminder sweep: relocate customers whose follow-up time has come.

Each tick selects every customer with reminder <= now, alerts the user once per
customer, and in ONE transition clears the reminders and moves the cards into
the needs-action column. The sweep is level-triggered; since the transition
clears the reminder, each reminder fires exactly once.
"""
import logging
import shutil
import subprocess
import threading
from dataclasses import replace
from datetime import datetime
from typing import Optional, List, Tuple, Callable

from .board import BoardState, remove_card_ids
from .schema import BoardData, Customer, NEEDS_ACTION, now_ms

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECS = 30

INVALID_DATE_MESSAGE = "تاریخ نامعتبر"


class ReminderInputError(ValueError):
    """Raised when reminder input cannot be parsed. Message is user-facing."""
    pass


def parse_reminder(text: str) -> int:
    """
    Parse reminder input into ms since epoch.

    Accepts the datetime-local form (YYYY-MM-DDTHH:MM, local time), a full
    ISO-8601 timestamp, or a raw ms epoch integer.
    """
    value = (text or "").strip()
    if not value:
        raise ReminderInputError(INVALID_DATE_MESSAGE)
    if value.isdigit():
        return int(value)
    try:
        return int(datetime.fromisoformat(value).timestamp() * 1000)
    except ValueError:
        raise ReminderInputError(INVALID_DATE_MESSAGE)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sweep transition
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def expired_customers(board: BoardData, now: int) -> List[Customer]:
    return [
        c for c in board.cards.values()
        if c.reminder is not None and c.reminder <= now
    ]


def sweep(
    board: BoardData, now: int, target_column: str = NEEDS_ACTION
) -> Tuple[BoardData, List[Customer]]:
    """
    Clear expired reminders and move those cards to target_column.

    Returns (new_board, fired). With nothing expired the input board is
    returned as-is. A missing target column still clears the reminders.
    """
    fired = expired_customers(board, now)
    if not fired:
        return board, []

    fired_ids = [c.id for c in fired]
    cards = dict(board.cards)
    for customer in fired:
        cards[customer.id] = replace(customer, reminder=None)

    columns = remove_card_ids(board, fired_ids)
    target = columns.get(target_column)
    if target is not None:
        columns[target_column] = replace(target, card_ids=target.card_ids + fired_ids)
    else:
        logger.warning(f"Sweep target column {target_column} missing; cards stay in place")
        columns = dict(board.columns)

    return replace(board, cards=cards, columns=columns), fired


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Notifiers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def reminder_title(customer: Customer) -> str:
    return f"یادآوری پیگیری برای {customer.name}"


def reminder_body(customer: Customer) -> str:
    return f"وقت پیگیری مشتری {customer.name} ({customer.shop_name}) فرا رسیده است."


class LogNotifier:
    """Fallback alert: a WARNING line on the console."""

    def notify(self, customer: Customer) -> None:
        logger.warning(f"{reminder_title(customer)}: {reminder_body(customer)}")


class DesktopNotifier:
    """Desktop notification through notify-send (libnotify)."""

    def __init__(self, binary: str = "notify-send", timeout: float = 5):
        self.binary = binary
        self.timeout = timeout

    @classmethod
    def available(cls, binary: str = "notify-send") -> bool:
        return shutil.which(binary) is not None

    def notify(self, customer: Customer) -> None:
        subprocess.run(
            [self.binary, "--app-name=crm", reminder_title(customer), reminder_body(customer)],
            check=True,
            timeout=self.timeout,
            capture_output=True,
        )


def default_notifier():
    """Desktop notifications when available, console alert otherwise."""
    if DesktopNotifier.available():
        return DesktopNotifier()
    return LogNotifier()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ReminderSweeper — periodic driver
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ReminderSweeper:
    """
    Runs the sweep against a BoardState every interval_secs on a daemon thread.

    stop() wakes the thread and joins it; once it returns no further tick
    touches the board.
    """

    def __init__(
        self,
        state: BoardState,
        interval_secs: float = DEFAULT_INTERVAL_SECS,
        notifier=None,
        target_column: str = NEEDS_ACTION,
        clock: Callable[[], int] = now_ms,
    ):
        self.state = state
        self.interval_secs = interval_secs
        self.notifier = notifier or default_notifier()
        self.target_column = target_column
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self, now: Optional[int] = None) -> List[Customer]:
        """One sweep. Returns the customers whose reminders fired."""
        now = now if now is not None else self.clock()
        fired = self.state.transact(lambda board: sweep(board, now, self.target_column))
        for customer in fired:
            try:
                self.notifier.notify(customer)
            except Exception as e:
                logger.error(f"Reminder alert for {customer.id} failed: {e}")
                LogNotifier().notify(customer)
        if fired:
            logger.info(f"Reminder sweep moved {len(fired)} card(s) to {self.target_column}")
        return fired

    def _run(self) -> None:
        while not self._stop.wait(self.interval_secs):
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Reminder sweep failed: {e}")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="reminder-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Reminder sweeper started (every {self.interval_secs}s)")

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None

    def __enter__(self) -> "ReminderSweeper":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
