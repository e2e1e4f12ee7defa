"""Tests for cooperative cancellation."""

import pytest

from cancellation import CancellationToken, ExportCancelledError, check_cancelled


def test_not_cancelled_by_default():
    """Test a fresh token passes every checkpoint."""
    token = CancellationToken()
    assert not token.is_cancelled
    token.raise_if_cancelled()
    check_cancelled(token)
    check_cancelled(None)


def test_cancel_raises_with_reason():
    """Test cancelling raises with the latest reason."""
    token = CancellationToken()
    token.cancel('user closed dialog')
    token.cancel('again')
    assert token.is_cancelled
    with pytest.raises(ExportCancelledError, match='Export cancelled: again'):
        check_cancelled(token)


def test_cancel_without_reason():
    """Test cancelling without a reason uses the plain message."""
    token = CancellationToken()
    token.cancel()
    with pytest.raises(ExportCancelledError) as excinfo:
        token.raise_if_cancelled()
    assert str(excinfo.value) == 'Export cancelled'
