from __future__ import annotations

from unittest import TestCase
from unittest.mock import Mock

from aicareofyou.services.reflections import upload_with_retry
from aicareofyou.utils.errors import StorageError, VendorError
from aicareofyou.utils.retry import retry


class RetryDecoratorTests(TestCase):
    def test_waits_grow_linearly_and_last_error_is_raised(self) -> None:
        waits = []
        calls = Mock(side_effect=StorageError('bucket offline'))

        @retry(max_attempts=3, backoff_seconds=1.0, sleep=waits.append)
        def flaky():
            return calls()

        with self.assertRaises(StorageError):
            flaky()

        self.assertEqual(3, calls.call_count)
        self.assertEqual([1.0, 2.0], waits)

    def test_non_retryable_errors_propagate_immediately(self) -> None:
        waits = []
        calls = Mock(side_effect=VendorError('nope'))

        @retry(max_attempts=3, retryable_exceptions=(StorageError,), sleep=waits.append)
        def vendor_call():
            return calls()

        with self.assertRaises(VendorError):
            vendor_call()
        self.assertEqual(1, calls.call_count)
        self.assertEqual([], waits)


class UploadWithRetryTests(TestCase):
    def test_upload_succeeds_on_third_attempt(self) -> None:
        storage = Mock()
        storage.upload_file.side_effect = [StorageError('a'), StorageError('b'), '/public/voice.mp3']
        waits = []

        url = upload_with_retry(storage, 'voice-reflections', 'u/a.mp3', b'abc', 'audio/mpeg', sleep=waits.append)

        self.assertEqual('/public/voice.mp3', url)
        self.assertEqual(3, storage.upload_file.call_count)
        self.assertEqual([1.0, 2.0], waits)
