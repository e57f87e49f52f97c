"""
主机证书刷新服务
"""
import time
from datetime import datetime, timezone
from typing import List, Optional
import logging

from ..models import FetchResult, HostRecord, RefreshSummary
from .expiry_calculator import ExpiryCalculator
from .expiry_fetcher import ExpiryService
from .logger import LoggerService


class HostRefresher:
    """
    逐个刷新主机证书到期时间

    每次检查后都会更新 last_checked，只有拿到具体到期时间时才更新 expiry_date，
    失败不会覆盖已有的到期时间。
    """

    def __init__(self, expiry_service: Optional[ExpiryService] = None,
                 logger_service: Optional[LoggerService] = None,
                 expiry_calculator: Optional[ExpiryCalculator] = None):
        self.expiry_service = expiry_service or ExpiryService()
        self.logger_service = logger_service
        self.expiry_calculator = expiry_calculator or ExpiryCalculator()
        self.logger = logging.getLogger(__name__)

    async def refresh_host(self, record: HostRecord) -> FetchResult:
        """
        刷新单个主机

        Args:
            record: 主机记录，会被原地更新

        Returns:
            FetchResult: 检查结果
        """
        try:
            result = await self.expiry_service.check_host(record.host)
        except Exception as e:
            # FetchError 已在 check_host 中转换为结果，这里只处理意外错误
            if self.logger_service:
                self.logger_service.log_error(record.host, e)
            else:
                self.logger.error(f"刷新主机 {record.host} 时发生错误: {type(e).__name__}: {str(e)}")
            result = FetchResult(host=record.host, error=e, checked_at=datetime.now(timezone.utc))

        record.record_check(result.expiry_date if result.is_success else None, result.checked_at)

        if self.logger_service:
            self.logger_service.log_fetch_result(record, result)

        return result

    async def refresh_all(self, records: List[HostRecord]) -> RefreshSummary:
        """
        按顺序刷新所有主机，前一个完成后才开始下一个

        Args:
            records: 主机记录列表

        Returns:
            RefreshSummary: 刷新结果统计
        """
        start_time = time.monotonic()

        if self.logger_service:
            self.logger_service.log_check_start(len(records))

        results = []
        for record in records:
            results.append(await self.refresh_host(record))

        if self.logger_service:
            self.logger_service.log_check_end()

        categorized = self.expiry_calculator.categorize_records(records)

        return RefreshSummary(
            total_hosts=len(records),
            successful_checks=len([result for result in results if result.is_success]),
            failed_checks=len([result for result in results if not result.is_success]),
            critical_hosts=categorized['critical'],
            warning_hosts=categorized['warning'],
            errors=[f"{result.host}: {result.error_message}" for result in results if result.error],
            execution_time=time.monotonic() - start_time,
            records=list(records)
        )
