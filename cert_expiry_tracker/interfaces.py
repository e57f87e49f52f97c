"""
服务接口定义
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from .models import FetchResult, HostRecord


class CertificateExtractorInterface(ABC):
    """证书到期时间提取器接口"""

    @abstractmethod
    def extract_expiry(self, cert_bytes: bytes) -> Optional[datetime]:
        """从DER编码的证书中提取到期时间"""
        pass


class ExpiryFetcherInterface(ABC):
    """证书到期时间获取器接口"""

    @abstractmethod
    async def fetch_expiry(self, host: str) -> Optional[datetime]:
        """连接主机并获取叶子证书的到期时间"""
        pass


class HostStoreInterface(ABC):
    """主机列表存储接口"""

    @abstractmethod
    def get_hosts(self) -> List[HostRecord]:
        """获取主机记录列表"""
        pass

    @abstractmethod
    def add_host(self, host: str) -> Optional[HostRecord]:
        """添加主机"""
        pass

    @abstractmethod
    def delete_host(self, host: str) -> bool:
        """删除主机"""
        pass


class NotificationServiceInterface(ABC):
    """通知服务接口"""

    @abstractmethod
    def send_expiry_notification(self, records: List[HostRecord]) -> bool:
        """发送证书到期提醒"""
        pass

    @abstractmethod
    def format_notification_content(self, records: List[HostRecord]) -> str:
        """格式化通知内容"""
        pass


class LoggerServiceInterface(ABC):
    """日志服务接口"""

    @abstractmethod
    def log_check_start(self, host_count: int):
        """记录检查开始"""
        pass

    @abstractmethod
    def log_fetch_result(self, record: HostRecord, result: FetchResult):
        """记录单个主机的检查结果"""
        pass

    @abstractmethod
    def log_error(self, host: str, error: Exception):
        """记录错误信息"""
        pass
