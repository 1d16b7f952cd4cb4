"""
Unit tests for settings and structured logging.
"""

import logging

from kms_envelope.config import Settings
from kms_envelope.utils.logger import StructuredFormatter, StructuredLogger, get_logger


class TestSettings:
    """Tests for environment-driven settings."""

    def test_reads_environment(self, monkeypatch):
        """Values come from environment variables."""
        monkeypatch.setenv("KMS_PROVIDER", "aws-kms")
        monkeypatch.setenv("KMS_KEY_ID", "  alias/objects  ")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")

        settings = Settings(_env_file=None)

        assert settings.KMS_PROVIDER == "aws-kms"
        assert settings.kms_key_id == "alias/objects"
        assert settings.AWS_REGION == "eu-west-1"

    def test_unset_key_id_is_empty_string(self, monkeypatch):
        """kms_key_id is "" when KMS_KEY_ID is not set."""
        monkeypatch.delenv("KMS_KEY_ID", raising=False)
        assert Settings(_env_file=None).kms_key_id == ""


class TestStructuredLogging:
    """Tests for the structured logger."""

    def test_formatter_appends_extra_fields(self):
        """Extra fields are rendered as key=value pairs."""
        record = logging.LogRecord(
            name="kms_envelope.test", level=logging.INFO, pathname=__file__, lineno=1,
            msg="Created envelope", args=(), exc_info=None,
        )
        record.kms_key_id = "alias/objects"

        output = StructuredFormatter().format(record)

        assert "| INFO     | kms_envelope.test | Created envelope" in output
        assert output.endswith("| kms_key_id=alias/objects")

    def test_reserved_fields_are_prefixed(self):
        """Keyword fields that clash with LogRecord attributes get a ctx_ prefix."""
        records = []

        class Collect(logging.Handler):
            def emit(self, record):
                records.append(record)

        base = logging.getLogger("kms_envelope.test.reserved")
        base.setLevel(logging.DEBUG)
        handler = Collect()
        base.addHandler(handler)
        try:
            StructuredLogger(base).info("message", name="clash", operation="decrypt")
        finally:
            base.removeHandler(handler)

        assert records[0].ctx_name == "clash"
        assert records[0].operation == "decrypt"

    def test_get_logger_namespace(self):
        """Loggers live under the kms_envelope namespace."""
        assert get_logger("key_materials").name == "kms_envelope.key_materials"
