"""Cooperative cancellation for long-running exports."""

import logging

logger = logging.getLogger('document_exporter.cancellation')


class ExportCancelledError(Exception):
    """Raised when an export is cancelled by the user."""

    def __init__(self, message: str = "Export cancelled"):
        super().__init__(message)


class CancellationToken:
    """Flag checked by the pipeline at its cancellation checkpoints."""

    def __init__(self):
        self._cancelled = False
        self.reason = None

    def cancel(self, reason: str = None) -> None:
        """Request cancellation. Idempotent."""
        if not self._cancelled:
            logger.info(f"Cancellation requested{': ' + reason if reason else ''}")
        self._cancelled = True
        self.reason = reason

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        """
        Raise if cancellation was requested.

        Raises:
            ExportCancelledError: If ``cancel()`` has been called
        """
        if self._cancelled:
            raise ExportCancelledError(
                f"Export cancelled: {self.reason}" if self.reason else "Export cancelled"
            )


def check_cancelled(token: 'CancellationToken') -> None:
    """Checkpoint helper accepting an optional token."""
    if token is not None:
        token.raise_if_cancelled()


__all__ = ['ExportCancelledError', 'CancellationToken', 'check_cancelled']
