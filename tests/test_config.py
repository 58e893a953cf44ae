"""
Tests for Application Settings
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from bookrater.config import Settings


class TestSettings:
    def test_placeholder_secret_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(secret_key="REPLACE_WITH_YOUR_GENERATED_SECRET_KEY")

    def test_short_secret_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(secret_key="too-short")

    def test_images_url_path_normalized(self):
        settings = Settings(
            secret_key="another-test-secret-key-that-is-long-enough",
            images_url_path="covers/",
        )

        assert settings.images_url_path == "/covers"
