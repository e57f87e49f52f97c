"""
测试公共fixture
"""
import asyncio
import socket
import ssl
from datetime import datetime, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


CERT_NOT_BEFORE = datetime(2024, 1, 1, tzinfo=timezone.utc)
CERT_NOT_AFTER = datetime(2031, 6, 30, 12, 0, 0, tzinfo=timezone.utc)


def build_self_signed_certificate(not_before=CERT_NOT_BEFORE, not_after=CERT_NOT_AFTER):
    """生成自签名证书，返回 (证书, 私钥)"""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(0x1000)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    return cert, key


@pytest.fixture
def self_signed_cert():
    return build_self_signed_certificate()


@pytest.fixture
def cert_der(self_signed_cert):
    cert, _ = self_signed_cert
    return cert.public_bytes(serialization.Encoding.DER)


@pytest.fixture
def server_ssl_context(self_signed_cert, tmp_path):
    """加载自签名证书的服务端TLS上下文"""
    cert, key = self_signed_cert
    cert_path = tmp_path / "cert.pem"
    key_path = tmp_path / "key.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption()
    ))

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(str(cert_path), str(key_path))
    return context


@pytest.fixture
def unused_port():
    """获取一个当前没有监听的本地端口"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _drain_connection(reader, writer):
    try:
        await reader.read()
    except (ConnectionError, ssl.SSLError, asyncio.IncompleteReadError):
        pass
    finally:
        writer.close()


@pytest.fixture
def drain_handler():
    """服务端处理器：读到连接关闭为止，不发送任何数据"""
    return _drain_connection
