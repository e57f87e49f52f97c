"""
错误处理服务
"""
import asyncio
import socket
import ssl
from typing import Callable, Any, Dict, List, Optional
from datetime import datetime, timezone
import logging


class FetchError(Exception):
    """证书获取错误基类"""

    retryable = True

    def __init__(self, host: str, message: str):
        super().__init__(message)
        self.host = host


class InvalidHostError(FetchError):
    """主机名格式无效，需要用户修正后才能重试"""

    retryable = False

    def __init__(self, host: str, reason: Optional[str] = None):
        message = f"Invalid host: {host!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(host, message)


class FetchConnectionError(FetchError):
    """在拿到证书之前连接失败（DNS、拒绝连接、超时、TLS协商失败）"""

    def __init__(self, host: str, cause: BaseException):
        super().__init__(host, f"Connection to {host} failed: {type(cause).__name__}: {cause}")
        self.cause = cause
        self.__cause__ = cause


class DecodeError(FetchError):
    """服务器提供了证书，但无法从中提取到期时间"""

    def __init__(self, host: str):
        super().__init__(host, "Could not extract expiration date from certificate")


class FetchCancelledError(FetchError):
    """调用方主动取消了检查"""

    retryable = False

    def __init__(self, host: str):
        super().__init__(host, f"Certificate check for {host} was cancelled")


class FetchErrorHandler:
    """证书获取错误处理器"""

    def __init__(self, max_retries: int = 0, base_delay: float = 1.0):
        """
        初始化错误处理器

        Args:
            max_retries: 最大重试次数，默认不重试
            base_delay: 基础延迟时间（秒）
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.logger = logging.getLogger(__name__)

    async def with_retry(self, func: Callable, *args, **kwargs) -> Any:
        """
        带重试机制执行协程函数

        只有可重试的 FetchError 才会重试，其他异常直接抛出。

        Args:
            func: 返回协程的函数
            *args: 函数参数
            **kwargs: 函数关键字参数

        Returns:
            Any: 函数执行结果

        Raises:
            Exception: 重试次数用尽后的最后一个异常
        """
        for attempt in range(self.max_retries + 1):
            try:
                return await func(*args, **kwargs)

            except FetchError as e:
                if not self.is_retryable(e):
                    self.logger.error(f"不可重试的错误: {type(e).__name__}: {str(e)}")
                    raise

                if attempt == self.max_retries:
                    if self.max_retries:
                        self.logger.error(f"重试次数用尽，最终失败: {type(e).__name__}: {str(e)}")
                    raise

                # 指数退避
                delay = self.base_delay * (2 ** attempt)

                self.logger.warning(
                    f"尝试 {attempt + 1}/{self.max_retries + 1} 失败: {type(e).__name__}: {str(e)}，"
                    f"{delay:.1f}秒后重试"
                )

                await asyncio.sleep(delay)

    def is_retryable(self, error: Exception) -> bool:
        """
        判断错误是否可重试

        Args:
            error: 异常对象

        Returns:
            bool: 是否可重试
        """
        if isinstance(error, FetchError):
            return error.retryable
        return False

    def handle_fetch_error(self, host: str, error: Exception) -> Dict[str, Any]:
        """
        处理证书获取错误

        Args:
            host: 主机名
            error: 异常对象

        Returns:
            Dict[str, Any]: 错误处理结果
        """
        error_info = {
            'host': host,
            'error_type': type(error).__name__,
            'error_message': str(error),
            'is_retryable': self.is_retryable(error),
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'suggested_action': self._get_suggested_action(error)
        }

        if error_info['is_retryable']:
            self.logger.warning(f"主机 {host} 证书获取失败（可重试）: {error_info['error_message']}")
        else:
            self.logger.error(f"主机 {host} 证书获取失败（不可重试）: {error_info['error_message']}")

        return error_info

    def _get_suggested_action(self, error: Exception) -> str:
        """
        获取错误的建议处理方案

        Args:
            error: 异常对象

        Returns:
            str: 建议的处理方案
        """
        if isinstance(error, InvalidHostError):
            return "检查主机名格式是否正确"
        elif isinstance(error, DecodeError):
            return "服务器证书格式异常，无法解析到期时间"
        elif isinstance(error, FetchCancelledError):
            return "检查已被取消，可稍后重新检查"
        elif isinstance(error, FetchConnectionError):
            cause = error.cause
            if isinstance(cause, (TimeoutError, socket.timeout, asyncio.TimeoutError)):
                return "检查网络连接，考虑增加超时时间"
            elif isinstance(cause, socket.gaierror):
                return "检查域名是否正确，DNS服务器是否可用"
            elif isinstance(cause, ConnectionRefusedError):
                return "检查目标服务器是否运行，端口是否正确"
            elif isinstance(cause, ssl.SSLError):
                return "TLS握手失败，检查服务器SSL配置"
            return "检查网络连接和服务器状态"
        return "检查网络连接和服务器状态"

    def get_error_statistics(self, error_list: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        获取错误统计信息

        Args:
            error_list: handle_fetch_error 返回的错误信息列表

        Returns:
            Dict[str, Any]: 错误统计
        """
        if not error_list:
            return {
                'total_errors': 0,
                'retryable_errors': 0,
                'non_retryable_errors': 0,
                'error_types': {},
                'most_common_error': None,
                'most_common_error_count': 0
            }

        error_types = {}
        retryable_count = 0

        for error_info in error_list:
            error_type = error_info.get('error_type', 'Unknown')
            error_types[error_type] = error_types.get(error_type, 0) + 1

            if error_info.get('is_retryable', False):
                retryable_count += 1

        most_common_error = max(error_types.items(), key=lambda x: x[1])

        return {
            'total_errors': len(error_list),
            'retryable_errors': retryable_count,
            'non_retryable_errors': len(error_list) - retryable_count,
            'error_types': error_types,
            'most_common_error': most_common_error[0],
            'most_common_error_count': most_common_error[1]
        }
