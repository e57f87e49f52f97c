"""
证书到期时间获取服务
"""
import asyncio
import ipaddress
import re
import ssl
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import urlsplit
import logging

from ..interfaces import CertificateExtractorInterface, ExpiryFetcherInterface
from ..models import FetchResult, FetcherSettings
from .cert_extractor import CertificateExtractor
from .error_handler import (
    DecodeError,
    FetchCancelledError,
    FetchConnectionError,
    FetchError,
    FetchErrorHandler,
    InvalidHostError,
)


_LABEL_PATTERN = re.compile(r'^(?!-)[A-Za-z0-9_-]{1,63}(?<!-)$')


def normalize_host(host: str, default_port: int = 443) -> Tuple[str, int]:
    """
    规范化用户输入的主机名

    去掉 http:// / https:// 前缀以及首尾的斜杠和空白，
    然后按 https://<host> 解析出主机和端口。

    Args:
        host: 用户输入的主机名
        default_port: 未指定端口时使用的端口

    Returns:
        Tuple[str, int]: (主机名, 端口)

    Raises:
        InvalidHostError: 无法解析为合法的主机
    """
    if not isinstance(host, str):
        raise InvalidHostError(repr(host), "host must be a string")

    clean_host = host.replace('https://', '').replace('http://', '').strip('/ \t\r\n')
    if not clean_host or any(ch.isspace() for ch in clean_host):
        raise InvalidHostError(host, "empty or contains whitespace")

    try:
        parts = urlsplit(f"https://{clean_host}")
        hostname = parts.hostname
        port = parts.port or default_port
    except ValueError as e:
        raise InvalidHostError(host, str(e)) from e

    if not hostname or not _is_valid_hostname(hostname):
        raise InvalidHostError(host)

    return hostname, port


def _is_valid_hostname(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
        return True
    except ValueError:
        pass

    try:
        ascii_name = hostname.encode('idna').decode('ascii')
    except UnicodeError:
        return False

    if len(ascii_name) > 253:
        return False

    return all(_LABEL_PATTERN.match(label) for label in ascii_name.rstrip('.').split('.'))


class FetchState(Enum):
    """单次获取的状态"""
    PENDING = "pending"
    RESOLVED = "resolved"
    ABORTED = "aborted"


class _CertificateCaptureProtocol(asyncio.Protocol):
    """握手完成后把传输层交给获取器，不发送任何应用数据"""

    def __init__(self, fetcher: "ExpiryFetcher"):
        self._fetcher = fetcher

    def connection_made(self, transport):
        self._fetcher._on_handshake(transport)

    def data_received(self, data):
        pass

    def connection_lost(self, exc):
        self._fetcher._on_connection_lost(exc)


class ExpiryFetcher(ExpiryFetcherInterface):
    """
    证书到期时间获取器

    每个实例只执行一次获取：建立一个TLS连接，在握手拿到叶子证书后解析到期时间，
    随即中断连接。状态只会从 PENDING 转换一次到 RESOLVED，之后由中断进入 ABORTED。
    """

    def __init__(self, extractor: Optional[CertificateExtractorInterface] = None,
                 timeout_ms: int = 10000, port: int = 443):
        """
        初始化获取器

        Args:
            extractor: 证书到期时间提取器
            timeout_ms: 单次连接超时时间（毫秒）
            port: 默认TLS端口
        """
        self.extractor = extractor or CertificateExtractor()
        self.timeout_ms = timeout_ms
        self.port = port
        self.logger = logging.getLogger(__name__)

        self.state = FetchState.PENDING
        self._started = False
        self._host = None
        self._future = None
        self._connect_task = None
        self._transport = None

    async def fetch_expiry(self, host: str) -> Optional[datetime]:
        """
        获取主机证书的到期时间

        Args:
            host: 主机名，可以带 http(s):// 前缀和首尾斜杠

        Returns:
            Optional[datetime]: 证书到期时间（UTC）

        Raises:
            InvalidHostError: 主机名无效，不会发起连接
            FetchConnectionError: 拿到证书之前连接失败或超时
            DecodeError: 无法从证书中提取到期时间
            FetchCancelledError: 调用方通过 cancel() 取消
        """
        if self._started:
            raise RuntimeError("ExpiryFetcher instances can only be used for a single fetch")
        self._started = True

        hostname, port = normalize_host(host, self.port)
        if self.state is not FetchState.PENDING:
            raise FetchCancelledError(hostname)
        self._host = hostname

        loop = asyncio.get_running_loop()
        self._future = loop.create_future()

        timeout = self.timeout_ms / 1000.0
        try:
            return await asyncio.wait_for(self._run(loop, hostname, port, timeout), timeout)
        except asyncio.TimeoutError as e:
            error = FetchConnectionError(hostname, TimeoutError(
                f"no certificate received within {self.timeout_ms} ms"))
            resolved = self._resolve(error=error)
            if self._future.done() and not self._future.cancelled():
                if not resolved:
                    return self._future.result()
                # 错误直接抛出，future 上的同一个异常标记为已读取
                self._future.exception()
            raise error from e
        finally:
            self._abort()

    async def _run(self, loop, hostname: str, port: int, timeout: float) -> Optional[datetime]:
        self._connect_task = asyncio.ensure_future(loop.create_connection(
            lambda: _CertificateCaptureProtocol(self),
            hostname,
            port,
            ssl=self._create_ssl_context(),
            server_hostname=hostname,
            ssl_handshake_timeout=timeout
        ))
        try:
            await self._connect_task
        except asyncio.CancelledError:
            # cancel() 取消的连接不是外部取消
            if self.state is FetchState.PENDING:
                raise
        except OSError as e:
            # 自己中断连接之后的失败不是真正的错误
            if self.state is FetchState.PENDING:
                self.logger.debug(f"连接 {hostname}:{port} 失败: {type(e).__name__}: {str(e)}")
                self._resolve(error=FetchConnectionError(hostname, e))

        return await self._future

    def cancel(self) -> bool:
        """
        调用方主动取消检查

        Returns:
            bool: 是否由本次调用完成了结果的确定
        """
        resolved = self._resolve(error=FetchCancelledError(self._host or ''))
        self._abort()
        return resolved

    def _create_ssl_context(self) -> ssl.SSLContext:
        # 信任校验由本组件负责：不校验证书链和主机名，每次检查使用独立的上下文
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    def _on_handshake(self, transport):
        self._transport = transport
        if self.state is not FetchState.PENDING:
            self._abort()
            return

        ssl_object = transport.get_extra_info('ssl_object')
        cert_bytes = ssl_object.getpeercert(binary_form=True) if ssl_object else None
        expiry_date = self.extractor.extract_expiry(cert_bytes) if cert_bytes else None

        if expiry_date is not None:
            self._resolve(value=expiry_date)
        else:
            self._resolve(error=DecodeError(self._host))
        self._abort()

    def _on_connection_lost(self, exc: Optional[Exception]):
        if self.state is not FetchState.PENDING:
            return
        self._resolve(error=FetchConnectionError(
            self._host, exc or ConnectionResetError("connection closed before certificate was received")))

    def _resolve(self, value: Optional[datetime] = None, error: Optional[FetchError] = None) -> bool:
        """只有第一次调用生效，之后的调用直接返回False"""
        if self.state is not FetchState.PENDING:
            return False

        self.state = FetchState.RESOLVED
        if self._future is not None and not self._future.done():
            if error is not None:
                self._future.set_exception(error)
            else:
                self._future.set_result(value)
        return True

    def _abort(self):
        if self.state is FetchState.PENDING and self._future is not None:
            self._future.cancel()
        self.state = FetchState.ABORTED
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        if self._transport is not None:
            self._transport.abort()
            self._transport = None


class ExpiryService:
    """证书到期时间服务，每次检查创建新的获取器"""

    def __init__(self, settings: Optional[FetcherSettings] = None,
                 extractor: Optional[CertificateExtractorInterface] = None,
                 error_handler: Optional[FetchErrorHandler] = None):
        self.settings = settings or FetcherSettings.from_env()
        self.extractor = extractor or CertificateExtractor()
        self.error_handler = error_handler or FetchErrorHandler()
        self.logger = logging.getLogger(__name__)

    def create_fetcher(self) -> ExpiryFetcher:
        return ExpiryFetcher(
            extractor=self.extractor,
            timeout_ms=self.settings.timeout_ms,
            port=self.settings.port
        )

    async def fetch_expiry_date(self, host: str) -> Optional[datetime]:
        fetcher = self.create_fetcher()
        return await fetcher.fetch_expiry(host)

    async def check_host(self, host: str) -> FetchResult:
        """
        检查单个主机，FetchError 不会抛出而是记录在结果中

        Args:
            host: 主机名

        Returns:
            FetchResult: 检查结果
        """
        try:
            expiry_date = await self.error_handler.with_retry(self.fetch_expiry_date, host)
            return FetchResult(host=host, expiry_date=expiry_date)

        except FetchError as e:
            self.error_handler.handle_fetch_error(host, e)
            return FetchResult(host=host, error=e, checked_at=datetime.now(timezone.utc))
