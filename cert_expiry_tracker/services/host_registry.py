"""
主机列表管理服务
"""
import os
import re
from typing import Dict, List, Optional
import logging

from ..interfaces import HostStoreInterface
from ..models import HostRecord
from .error_handler import InvalidHostError
from .expiry_fetcher import normalize_host


class HostRegistry(HostStoreInterface):
    """内存中的主机列表，持久化由调用方负责"""

    def __init__(self, env_var_name: str = "HOSTS"):
        """
        初始化主机列表

        Args:
            env_var_name: 环境变量名称，默认为"HOSTS"
        """
        self.env_var_name = env_var_name
        self.logger = logging.getLogger(__name__)

        # 主机名格式验证正则表达式
        self.host_pattern = re.compile(
            r'^(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}$'
        )

        self._records: Dict[str, HostRecord] = {}

    def get_hosts(self) -> List[HostRecord]:
        """
        获取按主机名排序的记录列表

        Returns:
            List[HostRecord]: 主机记录列表
        """
        return sorted(self._records.values(), key=lambda record: record.host)

    def get_host(self, host: str) -> Optional[HostRecord]:
        return self._records.get(self._host_key(host))

    def add_host(self, host: str) -> Optional[HostRecord]:
        """
        添加主机

        记录保留用户输入（去掉首尾空白），去重按规范化后的主机名和端口进行，
        例如 https://example.com/ 和 example.com 是同一个主机。

        Args:
            host: 用户输入的主机名

        Returns:
            Optional[HostRecord]: 新建或已存在的记录，输入为空时返回None
        """
        if not host or not isinstance(host, str):
            return None

        host = host.strip()
        if not host:
            return None

        key = self._host_key(host)
        if key in self._records:
            self.logger.info(f"主机已存在: {host}")
            return self._records[key]

        if not self.validate_host(host):
            self.logger.warning(f"主机名格式可能无效: {host}")

        record = HostRecord(host=host)
        self._records[key] = record
        self.logger.info(f"添加主机: {host}")
        return record

    def delete_host(self, host: str) -> bool:
        """
        删除主机

        Args:
            host: 主机名

        Returns:
            bool: 是否删除成功
        """
        record = self._records.pop(self._host_key(host), None) if host else None
        if record is None:
            self.logger.warning(f"要删除的主机不存在: {host}")
            return False

        self.logger.info(f"删除主机: {host}")
        return True

    def load_from_env(self) -> List[HostRecord]:
        """
        从环境变量读取主机列表（逗号分隔）

        Returns:
            List[HostRecord]: 当前全部主机记录
        """
        hosts_str = os.getenv(self.env_var_name, "")

        if not hosts_str.strip():
            self.logger.warning(f"环境变量 {self.env_var_name} 为空")
            return self.get_hosts()

        added = 0
        for host in hosts_str.split(','):
            if self.add_host(host):
                added += 1

        self.logger.info(f"成功加载 {added} 个主机")
        return self.get_hosts()

    def validate_host(self, host: str) -> bool:
        """
        验证主机名格式（去掉协议前缀、路径和端口后）

        Args:
            host: 主机名

        Returns:
            bool: 主机名是否有效
        """
        if not host or not isinstance(host, str):
            return False

        host = self._clean_host(host)

        if len(host) > 253:
            return False

        if host.startswith('.') or host.endswith('.'):
            return False

        return bool(self.host_pattern.match(host))

    def _host_key(self, host: str) -> str:
        try:
            hostname, port = normalize_host(host)
        except InvalidHostError:
            return host.strip().lower()
        return f"{hostname}:{port}"

    def _clean_host(self, host: str) -> str:
        host = host.strip()

        if host.startswith('https://'):
            host = host[8:]
        elif host.startswith('http://'):
            host = host[7:]

        if '/' in host:
            host = host.split('/')[0]

        if ':' in host:
            host = host.split(':')[0]

        return host.strip().lower()

    def __len__(self) -> int:
        return len(self._records)
