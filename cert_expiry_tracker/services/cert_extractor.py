"""
证书到期时间提取服务
"""
import re
from datetime import datetime, timezone
from typing import List, Optional
import logging

from cryptography import x509

from ..interfaces import CertificateExtractorInterface
from ..models import ValidityPeriod


UTC_TIME_TAG = 0x17
GENERALIZED_TIME_TAG = 0x18

_UTC_TIME_PATTERN = re.compile(r'(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})Z')
_GENERALIZED_TIME_PATTERN = re.compile(r'(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})Z')


def parse_utc_time(value: str) -> Optional[datetime]:
    """
    解析 UTCTime（YYMMDDHHMMSSZ）

    两位年份按 X.509 规则换算：50-99 为 19xx，00-49 为 20xx。

    Args:
        value: 时间字符串

    Returns:
        Optional[datetime]: UTC时间，格式无效时返回None
    """
    match = _UTC_TIME_PATTERN.fullmatch(value)
    if not match:
        return None

    year, month, day, hour, minute, second = (int(part) for part in match.groups())
    year += 1900 if year >= 50 else 2000

    try:
        return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_generalized_time(value: str) -> Optional[datetime]:
    """
    解析 GeneralizedTime（YYYYMMDDHHMMSSZ）

    Args:
        value: 时间字符串

    Returns:
        Optional[datetime]: UTC时间，格式无效时返回None
    """
    match = _GENERALIZED_TIME_PATTERN.fullmatch(value)
    if not match:
        return None

    try:
        return datetime(*(int(part) for part in match.groups()), tzinfo=timezone.utc)
    except ValueError:
        return None


class CertificateExtractor(CertificateExtractorInterface):
    """证书到期时间提取器实现"""

    def __init__(self, structural: bool = True):
        """
        初始化提取器

        Args:
            structural: 是否优先按 X.509 结构解码 Validity，
                        为False时只使用字节扫描
        """
        self.structural = structural
        self.logger = logging.getLogger(__name__)

    def extract_expiry(self, cert_bytes: bytes) -> Optional[datetime]:
        """
        从DER编码的证书中提取到期时间（notAfter）

        结构解码失败时回退到字节扫描。

        Args:
            cert_bytes: DER编码的叶子证书

        Returns:
            Optional[datetime]: 到期时间，找不到时返回None
        """
        if not cert_bytes:
            return None

        if self.structural:
            validity = self.read_validity(cert_bytes)
            if validity is not None:
                return validity.not_after
            self.logger.debug("证书结构解码失败，回退到字节扫描")

        return self.scan_expiry(cert_bytes)

    def read_validity(self, cert_bytes: bytes) -> Optional[ValidityPeriod]:
        """
        按 X.509 结构读取 TBSCertificate 中的 Validity

        Args:
            cert_bytes: DER编码的证书

        Returns:
            Optional[ValidityPeriod]: 有效期，无法解码时返回None
        """
        try:
            cert = x509.load_der_x509_certificate(bytes(cert_bytes))
            return ValidityPeriod(
                not_before=cert.not_valid_before_utc,
                not_after=cert.not_valid_after_utc
            )
        except ValueError as e:
            self.logger.debug(f"无法解码证书: {str(e)}")
            return None

    def scan_expiry(self, cert_bytes: bytes) -> Optional[datetime]:
        """
        通过字节扫描选出到期时间

        证书的有效期按 (notBefore, notAfter) 顺序编码，所以取扫描到的第二个时间；
        只找到一个时返回该时间（可能恰好是notBefore），一个都没有时返回None。

        Args:
            cert_bytes: DER编码的证书

        Returns:
            Optional[datetime]: 到期时间
        """
        dates = self.scan_timestamps(cert_bytes)

        if len(dates) >= 2:
            return dates[1]
        return dates[0] if dates else None

    def scan_timestamps(self, cert_bytes: bytes) -> List[datetime]:
        """
        线性扫描字节流，收集所有 UTCTime / GeneralizedTime 字段

        长度只读取一个字节（0-255），不解析多字节长度。

        Args:
            cert_bytes: 字节流

        Returns:
            List[datetime]: 按出现顺序排列的时间列表
        """
        data = bytes(cert_bytes)
        dates = []
        offset = 0

        while offset < len(data) - 1:
            tag = data[offset]
            if tag in (UTC_TIME_TAG, GENERALIZED_TIME_TAG):
                length = data[offset + 1]
                end = offset + 2 + length
                if end <= len(data):
                    parsed = self._parse_time(tag, data[offset + 2:end])
                    if parsed is not None:
                        dates.append(parsed)
                    offset = end
                    continue
            offset += 1

        return dates

    def _parse_time(self, tag: int, raw: bytes) -> Optional[datetime]:
        try:
            value = raw.decode('ascii')
        except UnicodeDecodeError:
            return None

        if tag == UTC_TIME_TAG:
            return parse_utc_time(value)
        return parse_generalized_time(value)
