"""Tests for BaseService unit-of-work handling and operation metrics."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from petstay.core.exceptions import ServiceException
from petstay.services.base import BaseService


class SampleService(BaseService):
    @BaseService.measure_operation("sample.ok")
    def ok(self):
        return "done"

    @BaseService.measure_operation("sample.fail")
    def fail(self):
        raise ValueError("nope")


@pytest.fixture
def db():
    session = MagicMock()
    session.info = {}
    return session


class TestTransaction:
    def test_without_session_only_scopes(self):
        service = BaseService()
        with service.transaction() as session:
            assert session is None

    def test_commits_outermost_only(self, db):
        service = BaseService(db)

        with service.transaction():
            with service.transaction():
                pass
            db.commit.assert_not_called()

        db.commit.assert_called_once()
        assert db.info["petstay_tx_depth"] == 0

    def test_services_sharing_a_session_join_one_unit(self, db):
        outer, inner = BaseService(db), BaseService(db)

        with outer.transaction():
            with inner.transaction():
                pass

        db.commit.assert_called_once()

    def test_domain_error_rolls_back_and_propagates(self, db):
        service = BaseService(db)

        with pytest.raises(ValueError):
            with service.transaction():
                with service.transaction():
                    raise ValueError("bad")

        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_database_error_becomes_service_exception(self, db):
        service = BaseService(db)

        with pytest.raises(ServiceException):
            with service.transaction():
                raise OperationalError("SELECT 1", {}, Exception("db gone"))

        db.rollback.assert_called_once()


class TestMeasureOperation:
    def test_records_success_and_failure(self):
        service = SampleService()
        service.reset_metrics()

        assert service.ok() == "done"
        with pytest.raises(ValueError):
            service.fail()

        metrics = service.get_metrics()
        assert metrics["sample.ok"]["count"] == 1
        assert metrics["sample.ok"]["success_rate"] == 1.0
        assert metrics["sample.fail"]["failure_count"] == 1

    def test_reset(self):
        service = SampleService()
        service.ok()
        service.reset_metrics()
        assert service.get_metrics() == {}

    def test_keeps_wrapped_name(self):
        assert SampleService.ok.__name__ == "ok"
        assert SampleService.ok.__wrapped__._operation_name == "sample.ok"
