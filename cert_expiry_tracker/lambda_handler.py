"""
AWS Lambda函数入口点
"""
import asyncio
import os
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone

from .models import FetcherSettings, HostRecord, RefreshSummary
from .services.expiry_calculator import ExpiryCalculator
from .services.expiry_fetcher import ExpiryService
from .services.host_refresher import HostRefresher
from .services.host_registry import HostRegistry
from .services.logger import LoggerService
from .services.sns_notification import SNSNotificationService


class CertExpiryTracker:
    """证书到期跟踪器主类"""

    def __init__(self):
        """初始化跟踪器"""
        self.logger_service = LoggerService()
        self.settings = FetcherSettings.from_env()
        self.host_registry = HostRegistry()
        self.expiry_calculator = ExpiryCalculator(
            warning_days=_days_from_env('WARNING_DAYS', 30),
            critical_days=_days_from_env('CRITICAL_DAYS', 7)
        )
        self.expiry_service = ExpiryService(settings=self.settings)
        self.refresher = HostRefresher(
            expiry_service=self.expiry_service,
            logger_service=self.logger_service,
            expiry_calculator=self.expiry_calculator
        )
        self.notification_service = SNSNotificationService(expiry_calculator=self.expiry_calculator)

        self._log_configuration()

    def _log_configuration(self):
        """记录系统配置信息"""
        config = {
            'hosts': os.getenv('HOSTS', ''),
            'fetch_timeout_ms': self.settings.timeout_ms,
            'fetch_port': self.settings.port,
            'warning_days': self.expiry_calculator.warning_days,
            'critical_days': self.expiry_calculator.critical_days,
            'sns_topic_arn': os.getenv('SNS_TOPIC_ARN', ''),
            'log_level': os.getenv('LOG_LEVEL', 'INFO')
        }

        self.logger_service.log_configuration_info(config)

    def load_hosts(self, hosts: Optional[List[str]] = None) -> List[HostRecord]:
        """
        加载要检查的主机

        Args:
            hosts: 事件中指定的主机列表，为None时从环境变量读取

        Returns:
            List[HostRecord]: 主机记录列表
        """
        if hosts is None:
            return self.host_registry.load_from_env()

        for host in hosts:
            self.host_registry.add_host(host)
        return self.host_registry.get_hosts()

    def execute(self, hosts: Optional[List[str]] = None) -> RefreshSummary:
        """
        执行证书到期检查

        Args:
            hosts: 要检查的主机列表

        Returns:
            RefreshSummary: 检查结果
        """
        records = self.load_hosts(hosts)

        if not records:
            self.logger_service.logger.warning("没有找到要检查的主机")
            return RefreshSummary(
                total_hosts=0,
                successful_checks=0,
                failed_checks=0,
                critical_hosts=[],
                warning_hosts=[],
                errors=["没有找到要检查的主机"],
                execution_time=0.0
            )

        summary = asyncio.run(self.refresher.refresh_all(records))

        self._send_notifications(summary)
        self.logger_service.logger.info(self.expiry_calculator.get_expiry_summary(records))
        self.logger_service.log_execution_summary()

        return summary

    def _send_notifications(self, summary: RefreshSummary) -> bool:
        """
        发送到期提醒

        Args:
            summary: 检查结果

        Returns:
            bool: 通知是否发送成功
        """
        notification_records = summary.critical_hosts + summary.warning_hosts

        if not notification_records:
            self.logger_service.logger.info("所有证书状态正常，无需发送通知")
            return True

        if not self.notification_service.topic_arn:
            self.logger_service.logger.info("未配置SNS主题，跳过通知发送")
            return False

        sent = self.notification_service.send_expiry_notification(notification_records)
        self.logger_service.log_notification_sent("SNS", len(notification_records), sent)
        return sent


def _days_from_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def _format_record(record: HostRecord) -> Dict[str, Any]:
    return {
        'host': record.host,
        'expiry_date': record.expiry_date.isoformat() if record.expiry_date else None,
        'last_checked': record.last_checked.isoformat()
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda函数入口点

    Args:
        event: 触发事件，可以通过 "hosts" 指定要检查的主机
        context: Lambda运行时上下文

    Returns:
        dict: 执行结果和统计信息
    """
    try:
        tracker = CertExpiryTracker()
        result = tracker.execute((event or {}).get('hosts'))

        response = {
            'statusCode': 200,
            'body': {
                'message': 'Certificate expiry check executed successfully',
                'summary': {
                    'total_hosts': result.total_hosts,
                    'successful_checks': result.successful_checks,
                    'failed_checks': result.failed_checks,
                    'critical_certificates': len(result.critical_hosts),
                    'warning_certificates': len(result.warning_hosts),
                    'execution_time_seconds': result.execution_time
                },
                'hosts': [_format_record(record) for record in result.records],
                'critical_hosts': [record.host for record in result.critical_hosts],
                'warning_hosts': [record.host for record in result.warning_hosts],
                'errors': result.errors[:5],  # 只返回前5个错误
                'timestamp': datetime.now(timezone.utc).isoformat()
            }
        }

        if result.total_hosts == 0:
            response['statusCode'] = 400
            response['body']['message'] = 'No hosts configured'

        return response

    except Exception as e:
        LoggerService().logger.exception(f"Lambda函数执行时发生严重错误: {str(e)}")
        return {
            'statusCode': 500,
            'body': {
                'message': 'Certificate expiry check encountered a critical error',
                'error': str(e),
                'timestamp': datetime.now(timezone.utc).isoformat()
            }
        }
