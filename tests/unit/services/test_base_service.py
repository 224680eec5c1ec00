from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import OperationalError

from tests.factories import fixed_clock
from vrumi.core.exceptions import ServiceException
from vrumi.monitoring.prometheus_metrics import REGISTRY
from vrumi.services.base import BaseService


class SampleService(BaseService):
    @BaseService.measure_operation("do_work")
    def do_work(self, fail: bool = False) -> str:
        if fail:
            raise ValueError("nope")
        return "done"


class TestMeasureOperation:
    def test_records_success_and_failure(self) -> None:
        service = SampleService(Mock())
        service.reset_metrics()

        assert service.do_work() == "done"
        with pytest.raises(ValueError):
            service.do_work(fail=True)

        metrics = service.get_metrics()["do_work"]
        assert metrics["count"] == 2
        assert metrics["success_count"] == 1
        assert metrics["failure_count"] == 1
        assert metrics["success_rate"] == 0.5

    def test_exports_prometheus_error_counter(self) -> None:
        service = SampleService(Mock())
        labels = {"service": "SampleService", "operation": "do_work", "error_type": "ValueError"}
        before = REGISTRY.get_sample_value("vrumi_errors_total", labels) or 0.0

        with pytest.raises(ValueError):
            service.do_work(fail=True)

        assert REGISTRY.get_sample_value("vrumi_errors_total", labels) == before + 1

    def test_slow_operation_is_logged(self) -> None:
        service = SampleService(Mock())

        with patch("vrumi.services.base.time") as mock_time:
            mock_time.time.side_effect = [0.0, 5.0]
            with patch.object(service.logger, "warning") as mock_warning:
                service.do_work()

        mock_warning.assert_called_once()


class TestTransaction:
    def test_commits_on_success(self) -> None:
        db = Mock()
        service = BaseService(db)

        with service.transaction():
            pass

        db.commit.assert_called_once()
        db.rollback.assert_not_called()

    def test_database_errors_become_service_exceptions(self) -> None:
        db = Mock()
        db.commit.side_effect = OperationalError("COMMIT", {}, Exception("disk I/O error"))
        service = BaseService(db)

        with pytest.raises(ServiceException):
            with service.transaction():
                pass

        db.rollback.assert_called_once()

    def test_domain_errors_roll_back_and_propagate(self) -> None:
        db = Mock()
        service = BaseService(db)

        with pytest.raises(KeyError):
            with service.transaction():
                raise KeyError("missing")

        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_now_uses_injected_clock(self) -> None:
        marker = object()
        service = BaseService(Mock(), clock=lambda: marker)

        assert service.now() is marker

    def test_now_utc_converts_injected_clock(self) -> None:
        service = BaseService(Mock(), clock=fixed_clock)

        assert service.now_utc() == datetime(2024, 3, 18, 13, 30, tzinfo=timezone.utc)
