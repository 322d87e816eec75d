"""
Tests for ServiceResult and BaseService.
"""

import logging

import pytest
from django.contrib.auth.models import User

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult


class TestServiceResult:
    def test_success_is_truthy(self):
        result = ServiceResult.success({"id": 1})

        assert result
        assert result.data == {"id": 1}
        assert result.error is None

    def test_failure_is_falsy(self):
        result = ServiceResult.failure("No local payment", error_code="PAYMENT_NOT_FOUND")

        assert not result
        assert result.data is None
        assert result.error_code == "PAYMENT_NOT_FOUND"

    def test_from_application_error(self):
        result = ServiceResult.from_exception(NotFoundError("gone", error_code="PAYMENT_NOT_FOUND"))

        assert result.error == "gone"
        assert result.error_code == "PAYMENT_NOT_FOUND"

    def test_from_plain_exception(self):
        result = ServiceResult.from_exception(KeyError("id"))

        assert result.error_code == "KEYERROR"

    def test_explicit_code_wins(self):
        result = ServiceResult.from_exception(ValueError("bad"), error_code="UNKNOWN_PAYMENT_STATUS")

        assert result.error_code == "UNKNOWN_PAYMENT_STATUS"


class SampleService(BaseService):
    pass


class TestBaseService:
    def test_logger_name(self):
        logger = SampleService.get_logger()

        assert isinstance(logger, logging.Logger)
        assert logger.name == f"{__name__}.SampleService"

    @pytest.mark.django_db
    def test_atomic_rolls_back(self):
        with pytest.raises(RuntimeError):
            with SampleService.atomic():
                User.objects.create(username="rolled-back")
                raise RuntimeError("boom")

        assert not User.objects.filter(username="rolled-back").exists()
