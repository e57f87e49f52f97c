"""
数据模型定义
"""
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List


class ExpiryStatus(Enum):
    """证书到期状态"""
    CRITICAL = "critical"
    WARNING = "warning"
    HEALTHY = "healthy"
    UNKNOWN = "unknown"


@dataclass
class ValidityPeriod:
    """证书有效期（notBefore / notAfter）"""
    not_before: datetime
    not_after: datetime


@dataclass
class FetchResult:
    """单次证书到期时间获取结果"""
    host: str
    expiry_date: Optional[datetime] = None
    error: Optional[Exception] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_success(self) -> bool:
        """是否获取到具体的到期时间"""
        return self.error is None and self.expiry_date is not None

    @property
    def error_type(self) -> Optional[str]:
        return type(self.error).__name__ if self.error else None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error else None


@dataclass
class HostRecord:
    """受监控的主机记录"""
    host: str
    expiry_date: Optional[datetime] = None
    last_checked: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def record_check(self, expiry_date: Optional[datetime], checked_at: Optional[datetime] = None):
        """
        记录一次检查

        无论检查结果如何都会更新 last_checked，只有拿到具体的到期时间时才更新 expiry_date。

        Args:
            expiry_date: 本次检查获取到的到期时间，失败时为None
            checked_at: 检查时间，默认当前UTC时间
        """
        self.last_checked = checked_at or datetime.now(timezone.utc)
        if expiry_date is not None:
            self.expiry_date = expiry_date


@dataclass
class RefreshSummary:
    """刷新结果统计"""
    total_hosts: int
    successful_checks: int
    failed_checks: int
    critical_hosts: List[HostRecord]
    warning_hosts: List[HostRecord]
    errors: List[str]
    execution_time: float
    records: List[HostRecord] = field(default_factory=list)


@dataclass
class FetcherSettings:
    """证书获取器配置"""
    timeout_ms: int = 10000
    port: int = 443

    @classmethod
    def from_env(cls) -> "FetcherSettings":
        """
        从环境变量读取配置

        Returns:
            FetcherSettings: 配置对象，环境变量缺失或格式无效时使用默认值
        """
        defaults = cls()
        return cls(
            timeout_ms=_int_from_env('FETCH_TIMEOUT_MS', defaults.timeout_ms),
            port=_int_from_env('FETCH_PORT', defaults.port)
        )


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name, '').strip()
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default
