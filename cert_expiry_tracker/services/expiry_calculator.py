"""
证书到期计算服务
"""
from datetime import datetime, timezone, timedelta
from typing import Dict, List, Optional
from ..models import ExpiryStatus, HostRecord


class ExpiryCalculator:
    """证书到期计算器"""

    def __init__(self, warning_days: int = 30, critical_days: int = 7):
        """
        初始化到期计算器

        Args:
            warning_days: 提前警告天数，默认30天
            critical_days: 紧急提醒天数，默认7天
        """
        self.warning_days = warning_days
        self.critical_days = critical_days

    def calculate_days_until_expiry(self, expiry_date: datetime, now: Optional[datetime] = None) -> int:
        """
        计算距离到期的天数

        Args:
            expiry_date: 到期时间
            now: 当前时间，默认当前UTC时间

        Returns:
            int: 剩余天数（负数表示已过期）
        """
        now = now or datetime.now(timezone.utc)
        delta = expiry_date - now
        return delta.days

    def get_status(self, expiry_date: Optional[datetime], now: Optional[datetime] = None) -> ExpiryStatus:
        """
        根据剩余天数判断到期状态

        Args:
            expiry_date: 到期时间，None表示还没有到期信息
            now: 当前时间

        Returns:
            ExpiryStatus: 到期状态
        """
        if expiry_date is None:
            return ExpiryStatus.UNKNOWN

        days = self.calculate_days_until_expiry(expiry_date, now)
        if days < self.critical_days:
            return ExpiryStatus.CRITICAL
        elif days < self.warning_days:
            return ExpiryStatus.WARNING
        return ExpiryStatus.HEALTHY

    def is_stale(self, last_checked: datetime, max_age_hours: int = 24, now: Optional[datetime] = None) -> bool:
        """
        判断检查结果是否过旧

        Args:
            last_checked: 上次检查时间
            max_age_hours: 最大允许间隔（小时）
            now: 当前时间

        Returns:
            bool: 是否需要重新检查
        """
        now = now or datetime.now(timezone.utc)
        return now - last_checked > timedelta(hours=max_age_hours)

    def categorize_records(self, records: List[HostRecord], now: Optional[datetime] = None) -> Dict[str, list]:
        """
        按到期状态对主机记录分类

        Args:
            records: 主机记录列表
            now: 当前时间

        Returns:
            dict: 分类结果
        """
        categorized = {status: [] for status in ExpiryStatus}
        for record in records:
            categorized[self.get_status(record.expiry_date, now)].append(record)

        return {
            'total': len(records),
            'critical': categorized[ExpiryStatus.CRITICAL],
            'warning': categorized[ExpiryStatus.WARNING],
            'healthy': categorized[ExpiryStatus.HEALTHY],
            'unknown': categorized[ExpiryStatus.UNKNOWN]
        }

    def get_expiry_summary(self, records: List[HostRecord]) -> str:
        """
        获取到期状态摘要

        Args:
            records: 主机记录列表

        Returns:
            str: 摘要信息
        """
        categorized = self.categorize_records(records)

        summary_parts = [f"总计: {categorized['total']} 个主机"]

        if categorized['critical']:
            summary_parts.append(f"紧急({self.critical_days}天内): {len(categorized['critical'])} 个")

        if categorized['warning']:
            summary_parts.append(f"即将到期({self.warning_days}天内): {len(categorized['warning'])} 个")

        if categorized['healthy']:
            summary_parts.append(f"健康: {len(categorized['healthy'])} 个")

        if categorized['unknown']:
            summary_parts.append(f"无到期信息: {len(categorized['unknown'])} 个")

        return ", ".join(summary_parts)
