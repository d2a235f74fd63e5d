"""SMB command trace correlation."""

import logging

from src.aggregates import LEGACY_POLICY
from src.correlator import Correlator
from src.models import OUTBOUND, LogRecord, TracedOperation
from src.parser import parse_smb_message

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_COMMANDS = ("nt_transact_notify_change", "change_notify")


class SmbCorrelator(Correlator):
    """Pairs "->" commands with their responses from the SMB command trace.

    Responses without a begin are either server-pushed change
    notifications (counted separately, status ignored) or startless
    commands (counted as commands and folded into the status histogram).
    """

    def __init__(
        self,
        top_count: int = 10,
        top_policy: str = LEGACY_POLICY,
        notification_commands: tuple[str, ...] = DEFAULT_NOTIFICATION_COMMANDS,
    ):
        super().__init__(top_count, top_policy)
        self.notification_commands = frozenset(notification_commands)
        self.notifications = 0

    def feed(self, record: LogRecord):
        command = parse_smb_message(record.message)
        if command is None:
            logger.debug("Skipping SMB message without command payload: %r", record.message)
            return

        op = TracedOperation(
            record=record,
            description=command.command_name,
            path=command.file_name,
            status=command.status,
        )

        if command.direction == OUTBOUND:
            self.begin(op)
        elif self.complete(op) is None:
            if op.description in self.notification_commands:
                self.notifications += 1
            else:
                self.record_startless(op)
