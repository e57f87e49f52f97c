"""
SNS通知服务
"""
import os
import time
from typing import List, Optional
import logging
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..interfaces import NotificationServiceInterface
from ..models import ExpiryStatus, HostRecord
from .expiry_calculator import ExpiryCalculator


class SNSNotificationService(NotificationServiceInterface):
    """SNS通知服务实现"""

    def __init__(self, topic_arn: Optional[str] = None, region_name: Optional[str] = None,
                 expiry_calculator: Optional[ExpiryCalculator] = None):
        """
        初始化SNS通知服务

        Args:
            topic_arn: SNS主题ARN，如果为None则从环境变量读取
            region_name: AWS区域名称，如果为None则从ARN中提取
            expiry_calculator: 用于判断到期状态的计算器
        """
        self.topic_arn = topic_arn or os.getenv('SNS_TOPIC_ARN')
        self.expiry_calculator = expiry_calculator or ExpiryCalculator()

        if region_name:
            self.region_name = region_name
        elif self.topic_arn and self.topic_arn.startswith('arn:aws:sns:'):
            self.region_name = self.topic_arn.split(':')[3]
        else:
            self.region_name = os.getenv('AWS_REGION', 'us-east-1')

        self.logger = logging.getLogger(__name__)
        self.sns_client = None

        if self.topic_arn:
            try:
                self.sns_client = boto3.client('sns', region_name=self.region_name)
                self.logger.info(f"SNS客户端初始化成功，区域: {self.region_name}")
            except (BotoCoreError, ClientError) as e:
                self.logger.error(f"初始化SNS客户端失败: {str(e)}")

    def send_expiry_notification(self, records: List[HostRecord]) -> bool:
        """
        发送证书到期提醒

        Args:
            records: 紧急或即将到期的主机记录

        Returns:
            bool: 发送是否成功
        """
        if not records:
            self.logger.info("没有即将到期的证书，跳过通知发送")
            return True

        if not self._validate_configuration():
            return False

        subject = self._format_subject(records)
        message = self.format_notification_content(records)

        return self._publish_with_retry(subject, message)

    def _publish_with_retry(self, subject: str, message: str, max_retries: int = 3) -> bool:
        """
        带重试机制的SNS消息发布

        Args:
            subject: 消息主题
            message: 消息内容
            max_retries: 最大重试次数

        Returns:
            bool: 发送是否成功
        """
        for attempt in range(max_retries + 1):
            try:
                response = self.sns_client.publish(
                    TopicArn=self.topic_arn,
                    Subject=subject,
                    Message=message
                )
                self.logger.info(f"SNS通知发送成功，MessageId: {response.get('MessageId')}")
                return True

            except ClientError as e:
                error_code = e.response['Error']['Code']
                error_message = e.response['Error']['Message']

                if self._is_retryable_error(error_code) and attempt < max_retries:
                    wait_time = 2 ** attempt  # 指数退避
                    self.logger.warning(
                        f"SNS发送失败 (尝试 {attempt + 1}/{max_retries + 1}) - {error_code}: {error_message}，"
                        f"{wait_time}秒后重试"
                    )
                    time.sleep(wait_time)
                    continue

                self.logger.error(f"SNS发送失败 - {error_code}: {error_message}")
                return False

            except BotoCoreError as e:
                self.logger.error(f"发送SNS通知时发生错误: {str(e)}")
                return False

        return False

    def _is_retryable_error(self, error_code: str) -> bool:
        return error_code in {'Throttling', 'ServiceUnavailable', 'InternalError', 'RequestTimeout'}

    def format_notification_content(self, records: List[HostRecord]) -> str:
        """
        格式化通知内容

        Args:
            records: 主机记录列表

        Returns:
            str: 格式化的通知内容
        """
        if not records:
            return "所有证书状态正常。"

        calculator = self.expiry_calculator
        critical = [r for r in records if calculator.get_status(r.expiry_date) is ExpiryStatus.CRITICAL]
        warning = [r for r in records if calculator.get_status(r.expiry_date) is ExpiryStatus.WARNING]

        lines = [
            "证书到期监控报告",
            "=" * 30,
            f"检查时间: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')} UTC",
            ""
        ]

        for title, group in ((f"🚨 紧急 ({calculator.critical_days}天内到期或已过期):", critical),
                             (f"⚠️  即将到期 ({calculator.warning_days}天内):", warning)):
            if not group:
                continue
            lines.extend([title, ""])
            for record in group:
                days = calculator.calculate_days_until_expiry(record.expiry_date)
                lines.append(f"• {record.host}")
                lines.append(f"  到期时间: {record.expiry_date.strftime('%Y-%m-%d %H:%M:%S')}")
                lines.append(f"  剩余天数: {days} 天")
                lines.append(f"  上次检查: {record.last_checked.strftime('%Y-%m-%d %H:%M')}")
                lines.append("")

        lines.append("此消息由证书到期监控系统自动发送。")
        return "\n".join(lines)

    def _format_subject(self, records: List[HostRecord]) -> str:
        calculator = self.expiry_calculator
        critical_count = len([r for r in records if calculator.get_status(r.expiry_date) is ExpiryStatus.CRITICAL])
        warning_count = len([r for r in records if calculator.get_status(r.expiry_date) is ExpiryStatus.WARNING])

        if critical_count > 0 and warning_count > 0:
            return f"🚨 证书警报: {critical_count}个紧急, {warning_count}个即将到期"
        elif critical_count > 0:
            return f"🚨 证书警报: {critical_count}个证书紧急"
        elif warning_count > 0:
            return f"⚠️ 证书提醒: {warning_count}个证书即将到期"
        return "证书状态报告"

    def _validate_configuration(self) -> bool:
        """
        验证配置是否正确

        Returns:
            bool: 配置是否有效
        """
        if not self.topic_arn:
            self.logger.error("SNS主题ARN未配置")
            return False

        if not self.sns_client:
            self.logger.error("SNS客户端未初始化")
            return False

        return True

    def test_connection(self) -> bool:
        """
        测试SNS连接

        Returns:
            bool: 连接是否成功
        """
        if not self._validate_configuration():
            return False

        try:
            self.sns_client.get_topic_attributes(TopicArn=self.topic_arn)
            self.logger.info("SNS连接测试成功")
            return True

        except ClientError as e:
            error_code = e.response['Error']['Code']
            error_message = e.response['Error']['Message']
            self.logger.error(f"SNS连接测试失败 - {error_code}: {error_message}")
            return False

        except BotoCoreError as e:
            self.logger.error(f"SNS连接测试时发生错误: {str(e)}")
            return False

    def get_configuration_status(self) -> dict:
        """
        获取配置状态

        Returns:
            dict: 配置状态信息
        """
        return {
            'sns_client_initialized': self.sns_client is not None,
            'topic_arn_configured': bool(self.topic_arn),
            'topic_arn': self.topic_arn,
            'region_name': self.region_name,
            'configuration_valid': self._validate_configuration()
        }
