"""
配置验证服务
"""
import os
import re
from typing import Dict, Any
import logging

from .host_registry import HostRegistry


class ConfigValidator:
    """配置验证器"""

    def __init__(self):
        """初始化配置验证器"""
        self.logger = logging.getLogger(__name__)
        self.host_registry = HostRegistry()

        self.required_env_vars = {
            'HOSTS': '主机列表（逗号分隔）'
        }

        self.optional_env_vars = {
            'FETCH_TIMEOUT_MS': '单次连接超时时间（毫秒）',
            'FETCH_PORT': 'TLS端口',
            'WARNING_DAYS': '到期提醒天数',
            'CRITICAL_DAYS': '紧急提醒天数',
            'SNS_TOPIC_ARN': 'SNS主题ARN',
            'LOG_LEVEL': '日志级别'
        }

    def validate_all_configurations(self) -> Dict[str, Any]:
        """
        验证所有配置

        Returns:
            Dict[str, Any]: 验证结果
        """
        validation_result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'configurations': {}
        }

        for name, validate in (('environment', self.validate_environment_variables),
                               ('hosts', self.validate_hosts_configuration),
                               ('fetcher', self.validate_fetcher_configuration),
                               ('sns', self.validate_sns_configuration)):
            result = validate()
            validation_result['configurations'][name] = result
            validation_result['warnings'].extend(result['warnings'])

            if result['is_valid']:
                continue

            # SNS是可选的，配置错误只作为警告
            if name == 'sns':
                validation_result['warnings'].extend(result['errors'])
            else:
                validation_result['is_valid'] = False
                validation_result['errors'].extend(result['errors'])

        return validation_result

    def validate_environment_variables(self) -> Dict[str, Any]:
        """
        验证环境变量

        Returns:
            Dict[str, Any]: 环境变量验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'missing_required': [],
            'missing_optional': [],
            'present_vars': {}
        }

        for var_name, description in self.required_env_vars.items():
            value = os.getenv(var_name)
            if not value:
                result['missing_required'].append({'name': var_name, 'description': description})
                result['errors'].append(f"缺少必需的环境变量: {var_name} ({description})")
                result['is_valid'] = False
            else:
                result['present_vars'][var_name] = value

        for var_name, description in self.optional_env_vars.items():
            value = os.getenv(var_name)
            if not value:
                result['missing_optional'].append({'name': var_name, 'description': description})
            else:
                result['present_vars'][var_name] = self._sanitize_env_value(var_name, value)

        return result

    def validate_hosts_configuration(self) -> Dict[str, Any]:
        """
        验证主机列表配置

        Returns:
            Dict[str, Any]: 主机列表验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'total_hosts': 0,
            'valid_hosts': [],
            'invalid_hosts': []
        }

        hosts_str = os.getenv('HOSTS', '')

        if not hosts_str.strip():
            result['is_valid'] = False
            result['errors'].append("HOSTS环境变量为空")
            return result

        raw_hosts = [host.strip() for host in hosts_str.split(',') if host.strip()]
        result['total_hosts'] = len(raw_hosts)

        for host in raw_hosts:
            if self.host_registry.validate_host(host):
                result['valid_hosts'].append(host)
            else:
                result['invalid_hosts'].append(host)
                result['warnings'].append(f"主机名格式无效: {host}")

        if not result['valid_hosts']:
            result['is_valid'] = False
            result['errors'].append("没有找到有效的主机")

        return result

    def validate_fetcher_configuration(self) -> Dict[str, Any]:
        """
        验证证书获取器配置

        Returns:
            Dict[str, Any]: 获取器配置验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'timeout_ms': None,
            'port': None
        }

        timeout = os.getenv('FETCH_TIMEOUT_MS')
        if timeout:
            try:
                timeout_ms = int(timeout)
                result['timeout_ms'] = timeout_ms

                if timeout_ms <= 0:
                    result['is_valid'] = False
                    result['errors'].append(f"超时时间必须大于0: {timeout_ms}")
                elif timeout_ms < 1000:
                    result['warnings'].append(f"超时时间过短: {timeout_ms}毫秒，建议至少1000毫秒")
                elif timeout_ms > 60000:
                    result['warnings'].append(f"超时时间过长: {timeout_ms}毫秒")

            except ValueError:
                result['is_valid'] = False
                result['errors'].append(f"超时时间格式无效: {timeout}")

        port = os.getenv('FETCH_PORT')
        if port:
            try:
                port_number = int(port)
                result['port'] = port_number
                if not 0 < port_number < 65536:
                    result['is_valid'] = False
                    result['errors'].append(f"端口超出范围: {port_number}")
            except ValueError:
                result['is_valid'] = False
                result['errors'].append(f"端口格式无效: {port}")

        warning_days = self._parse_days('WARNING_DAYS', result)
        critical_days = self._parse_days('CRITICAL_DAYS', result)
        if warning_days is not None and critical_days is not None and critical_days > warning_days:
            result['warnings'].append(f"紧急提醒天数({critical_days})大于提醒天数({warning_days})")

        return result

    def _parse_days(self, var_name: str, result: Dict[str, Any]):
        value = os.getenv(var_name)
        if not value:
            return None
        try:
            days = int(value)
        except ValueError:
            result['is_valid'] = False
            result['errors'].append(f"{var_name}格式无效: {value}")
            return None
        if days < 0:
            result['is_valid'] = False
            result['errors'].append(f"{var_name}不能为负数: {days}")
            return None
        return days

    def validate_sns_configuration(self) -> Dict[str, Any]:
        """
        验证SNS配置

        Returns:
            Dict[str, Any]: SNS配置验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'topic_arn': None,
            'arn_format_valid': False
        }

        topic_arn = os.getenv('SNS_TOPIC_ARN')

        if not topic_arn:
            result['warnings'].append("SNS_TOPIC_ARN未设置，不会发送到期提醒")
            return result

        result['topic_arn'] = topic_arn

        arn_pattern = r'^arn:aws:sns:[a-z0-9-]+:\d{12}:[a-zA-Z0-9_-]+$'
        if re.match(arn_pattern, topic_arn):
            result['arn_format_valid'] = True
        else:
            result['is_valid'] = False
            result['errors'].append(f"SNS主题ARN格式无效: {topic_arn}")

        return result

    def _sanitize_env_value(self, var_name: str, value: str) -> str:
        """隐藏敏感环境变量的值"""
        if var_name == 'SNS_TOPIC_ARN' and value.startswith('arn:'):
            parts = value.split(':')
            if len(parts) >= 6:
                return f"{':'.join(parts[:3])}:***:{parts[-2]}:{parts[-1]}"
            return value[:8] + "***" if len(value) > 8 else "***"

        return value

    def get_configuration_summary(self) -> str:
        """
        获取配置摘要

        Returns:
            str: 配置摘要文本
        """
        validation_result = self.validate_all_configurations()

        lines = [
            "配置验证摘要",
            "=" * 30
        ]

        if validation_result['is_valid']:
            lines.append("✅ 配置验证通过")
        else:
            lines.append("❌ 配置验证失败")

        if validation_result['errors']:
            lines.append("\n错误:")
            for error in validation_result['errors']:
                lines.append(f"  • {error}")

        if validation_result['warnings']:
            lines.append("\n警告:")
            for warning in validation_result['warnings']:
                lines.append(f"  • {warning}")

        hosts_config = validation_result['configurations'].get('hosts', {})
        if hosts_config.get('valid_hosts'):
            lines.append(f"\n有效主机数量: {len(hosts_config['valid_hosts'])}")

        return "\n".join(lines)
