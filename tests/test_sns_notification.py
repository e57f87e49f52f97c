"""
SNS通知服务测试
"""
import pytest
import os
from unittest.mock import patch, MagicMock
from datetime import datetime, timezone, timedelta

import boto3
from botocore.exceptions import ClientError
from moto import mock_aws

from cert_expiry_tracker.models import HostRecord
from cert_expiry_tracker.services.sns_notification import SNSNotificationService


TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:cert-alerts"


@pytest.fixture
def aws_credentials(monkeypatch):
    """moto使用的假凭证"""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


def make_records():
    now = datetime.now(timezone.utc)
    return [
        HostRecord(host="critical.com", expiry_date=now + timedelta(days=3, hours=1)),
        HostRecord(host="warning.com", expiry_date=now + timedelta(days=15, hours=1)),
    ]


def client_error(code):
    return ClientError({'Error': {'Code': code, 'Message': 'error'}}, 'Publish')


class TestSNSNotificationService:
    """SNS通知服务测试类"""

    @patch('cert_expiry_tracker.services.sns_notification.boto3')
    def test_init_with_topic_arn(self, mock_boto3):
        """测试使用指定topic_arn初始化"""
        service = SNSNotificationService(topic_arn=TOPIC_ARN)

        assert service.topic_arn == TOPIC_ARN
        assert service.region_name == "us-east-1"
        mock_boto3.client.assert_called_once_with('sns', region_name='us-east-1')

    @patch.dict(os.environ, {}, clear=True)
    @patch('cert_expiry_tracker.services.sns_notification.boto3')
    def test_init_without_topic(self, mock_boto3):
        """测试未配置主题时不创建客户端"""
        service = SNSNotificationService()

        assert service.sns_client is None
        assert service.get_configuration_status()['configuration_valid'] is False
        mock_boto3.client.assert_not_called()

    def test_format_notification_content(self):
        """测试通知内容格式化"""
        service = SNSNotificationService(topic_arn=None)

        content = service.format_notification_content(make_records())

        assert "证书到期监控报告" in content
        assert "紧急 (7天内到期或已过期)" in content
        assert "即将到期 (30天内)" in content
        assert "critical.com" in content
        assert "warning.com" in content
        assert "剩余天数: 3 天" in content
        assert "剩余天数: 15 天" in content

    def test_format_notification_content_empty(self):
        """测试空列表的通知内容"""
        service = SNSNotificationService(topic_arn=None)

        assert service.format_notification_content([]) == "所有证书状态正常。"

    def test_format_subject(self):
        """测试通知主题"""
        service = SNSNotificationService(topic_arn=None)
        records = make_records()

        assert service._format_subject(records) == "🚨 证书警报: 1个紧急, 1个即将到期"
        assert service._format_subject(records[1:]) == "⚠️ 证书提醒: 1个证书即将到期"

    def test_send_empty_notification(self):
        """测试没有需要提醒的主机时直接返回"""
        service = SNSNotificationService(topic_arn=None)

        assert service.send_expiry_notification([]) is True

    @mock_aws
    def test_send_expiry_notification_with_moto(self, aws_credentials):
        """测试通过moto发送通知"""
        sns = boto3.client('sns', region_name='us-east-1')
        topic_arn = sns.create_topic(Name='cert-alerts')['TopicArn']

        service = SNSNotificationService(topic_arn=topic_arn)

        assert service.send_expiry_notification(make_records()) is True
        assert service.test_connection() is True

    @patch('cert_expiry_tracker.services.sns_notification.time.sleep')
    def test_publish_retry_on_throttling(self, mock_sleep):
        """测试限流错误重试"""
        service = SNSNotificationService(topic_arn=None)
        service.topic_arn = TOPIC_ARN
        service.sns_client = MagicMock()
        service.sns_client.publish.side_effect = [client_error('Throttling'), {'MessageId': 'abc'}]

        assert service.send_expiry_notification(make_records()) is True
        assert service.sns_client.publish.call_count == 2
        mock_sleep.assert_called_once_with(1)

    @patch('cert_expiry_tracker.services.sns_notification.time.sleep')
    def test_publish_non_retryable_error(self, mock_sleep):
        """测试不可重试的错误"""
        service = SNSNotificationService(topic_arn=None)
        service.topic_arn = TOPIC_ARN
        service.sns_client = MagicMock()
        service.sns_client.publish.side_effect = client_error('AuthorizationError')

        assert service.send_expiry_notification(make_records()) is False
        assert service.sns_client.publish.call_count == 1
        mock_sleep.assert_not_called()

    def test_connection_failure(self):
        """测试连接测试失败"""
        service = SNSNotificationService(topic_arn=None)
        service.topic_arn = TOPIC_ARN
        service.sns_client = MagicMock()
        service.sns_client.get_topic_attributes.side_effect = client_error('NotFound')

        assert service.test_connection() is False
