"""
主机证书刷新测试
"""
import asyncio
import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import MagicMock

from cert_expiry_tracker.models import FetchResult, HostRecord
from cert_expiry_tracker.services.error_handler import DecodeError, FetchConnectionError, InvalidHostError
from cert_expiry_tracker.services.host_refresher import HostRefresher


OLD_EXPIRY = datetime(2026, 1, 1, tzinfo=timezone.utc)
OLD_CHECK = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeExpiryService:
    """按主机返回预设结果的服务"""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.calls = []

    async def check_host(self, host):
        self.calls.append(host)
        outcome = self.outcomes[host]
        if isinstance(outcome, Exception) and not isinstance(outcome, (FetchConnectionError, DecodeError, InvalidHostError)):
            raise outcome
        if isinstance(outcome, Exception):
            return FetchResult(host=host, error=outcome)
        return FetchResult(host=host, expiry_date=outcome)


class TestHostRefresher:
    """刷新服务测试类"""

    def make_record(self, host):
        return HostRecord(host=host, expiry_date=OLD_EXPIRY, last_checked=OLD_CHECK)

    def test_success_updates_expiry_and_last_checked(self):
        """测试成功时同时更新到期时间和检查时间"""
        new_expiry = datetime(2027, 3, 1, tzinfo=timezone.utc)
        refresher = HostRefresher(expiry_service=FakeExpiryService({"a.com": new_expiry}))
        record = self.make_record("a.com")

        result = asyncio.run(refresher.refresh_host(record))

        assert result.is_success is True
        assert record.expiry_date == new_expiry
        assert record.last_checked > OLD_CHECK

    @pytest.mark.parametrize("error", [
        FetchConnectionError("a.com", ConnectionRefusedError()),
        DecodeError("a.com"),
        InvalidHostError("a.com"),
    ])
    def test_failure_only_updates_last_checked(self, error):
        """测试失败时只更新检查时间，保留已有到期时间"""
        refresher = HostRefresher(expiry_service=FakeExpiryService({"a.com": error}))
        record = self.make_record("a.com")

        result = asyncio.run(refresher.refresh_host(record))

        assert result.is_success is False
        assert record.expiry_date == OLD_EXPIRY
        assert record.last_checked > OLD_CHECK

    def test_absent_expiry_only_updates_last_checked(self):
        """测试没有到期时间的结果不会清空已有值"""
        refresher = HostRefresher(expiry_service=FakeExpiryService({"a.com": None}))
        record = self.make_record("a.com")

        asyncio.run(refresher.refresh_host(record))

        assert record.expiry_date == OLD_EXPIRY
        assert record.last_checked > OLD_CHECK

    def test_unexpected_error_is_recorded(self):
        """测试意外错误也会更新检查时间"""
        logger_service = MagicMock()
        refresher = HostRefresher(
            expiry_service=FakeExpiryService({"a.com": RuntimeError("boom")}),
            logger_service=logger_service
        )
        record = self.make_record("a.com")

        result = asyncio.run(refresher.refresh_host(record))

        assert result.error_type == "RuntimeError"
        assert record.last_checked > OLD_CHECK
        logger_service.log_error.assert_called_once()
        logger_service.log_fetch_result.assert_called_once_with(record, result)

    def test_refresh_all_sequential(self):
        """测试按顺序刷新所有主机并汇总"""
        now = datetime.now(timezone.utc)
        service = FakeExpiryService({
            "critical.com": now + timedelta(days=3),
            "warning.com": now + timedelta(days=20),
            "healthy.com": now + timedelta(days=200),
            "down.com": FetchConnectionError("down.com", TimeoutError()),
        })
        logger_service = MagicMock()
        refresher = HostRefresher(expiry_service=service, logger_service=logger_service)
        records = [HostRecord(host=host) for host in ["critical.com", "warning.com", "healthy.com", "down.com"]]

        summary = asyncio.run(refresher.refresh_all(records))

        assert service.calls == ["critical.com", "warning.com", "healthy.com", "down.com"]
        assert summary.total_hosts == 4
        assert summary.successful_checks == 3
        assert summary.failed_checks == 1
        assert [r.host for r in summary.critical_hosts] == ["critical.com"]
        assert [r.host for r in summary.warning_hosts] == ["warning.com"]
        assert len(summary.errors) == 1
        assert summary.errors[0].startswith("down.com: ")
        assert summary.records == records
        logger_service.log_check_start.assert_called_once_with(4)
        logger_service.log_check_end.assert_called_once()
