"""Tests for log redaction."""

import logging

from onboarding.core.logging import RedactingFilter, configure_logging, redact


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_redact_signed_query_string():
    url = "https://proj.supabase.co/storage/v1/object/sign/property-images/a.jpg?token=eyJhbGciOi"

    assert redact(f"loaded {url}") == "loaded https://proj.supabase.co/storage/v1/object/sign/property-images/a.jpg?<redacted>"


def test_redact_s3_presigned_url():
    url = "https://bucket.s3.amazonaws.com/a.jpg?X-Amz-Algorithm=AWS4-HMAC-SHA256&X-Amz-Signature=abc"

    assert "X-Amz-Signature" not in redact(url)


def test_plain_urls_and_paths_are_kept():
    assert redact("https://example.test/a.jpg?size=large") == "https://example.test/a.jpg?size=large"
    assert redact("props/1/kitchen.jpg") == "props/1/kitchen.jpg"


def test_bearer_token_is_masked():
    assert redact("Authorization: Bearer abc.def-123") == "Authorization: Bearer <redacted>"


def test_filter_masks_args_and_extra():
    record = logging.LogRecord(
        "onboarding.test", logging.INFO, __file__, 1,
        "resolved %s", ("https://cdn.test/a.jpg?token=secret",), None,
    )
    record.api_key = "service-key"
    record.url = "https://cdn.test/b.jpg?token=secret"

    assert RedactingFilter().filter(record)

    assert record.getMessage() == "resolved https://cdn.test/a.jpg?<redacted>"
    assert record.api_key == "<redacted>"
    assert record.url == "https://cdn.test/b.jpg?<redacted>"


def test_configure_logging_installs_filter_for_child_loggers():
    handler = ListHandler()
    logger = configure_logging(logging.DEBUG, handler)
    try:
        logging.getLogger("onboarding.services.photo_resolver").info(
            "signed https://cdn.test/a.jpg?token=secret",
        )
    finally:
        logger.removeHandler(handler)

    assert handler.records[-1].getMessage() == "signed https://cdn.test/a.jpg?<redacted>"
