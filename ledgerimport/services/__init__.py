"""Services for the LedgerImport client."""

from ledgerimport.services.context import ImportSessionContext
from ledgerimport.services.notifications import (
    ConsoleNotifier,
    LogNotifier,
    Notification,
    NotificationKind,
    Notifier,
    get_notifier,
)
from ledgerimport.services.poller import JobStatusPoller, PollerState
from ledgerimport.services.session import ImportSessionController, WorkflowStep
from ledgerimport.services.staging import ImportKind, StagingMapper
from ledgerimport.services.uploader import UploadSubmitter, UploadTarget

__all__ = [
    "ConsoleNotifier",
    "ImportKind",
    "ImportSessionContext",
    "ImportSessionController",
    "JobStatusPoller",
    "LogNotifier",
    "Notification",
    "NotificationKind",
    "Notifier",
    "PollerState",
    "StagingMapper",
    "UploadSubmitter",
    "UploadTarget",
    "WorkflowStep",
    "get_notifier",
]
