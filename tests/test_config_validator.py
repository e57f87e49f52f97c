"""
配置验证器测试
"""
import pytest
import os
from unittest.mock import patch

from cert_expiry_tracker.models import FetcherSettings
from cert_expiry_tracker.services.config_validator import ConfigValidator


VALID_ARN = 'arn:aws:sns:us-east-1:123456789012:cert-alerts'


class TestConfigValidator:
    """配置验证器测试类"""

    def setup_method(self):
        """测试前准备"""
        self.validator = ConfigValidator()

    @patch.dict(os.environ, {'HOSTS': 'example.com,test.org', 'SNS_TOPIC_ARN': VALID_ARN}, clear=True)
    def test_validate_all_valid(self):
        """测试有效配置"""
        result = self.validator.validate_all_configurations()

        assert result['is_valid'] is True
        assert result['errors'] == []
        assert result['configurations']['hosts']['valid_hosts'] == ['example.com', 'test.org']
        assert result['configurations']['sns']['arn_format_valid'] is True

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_hosts(self):
        """测试缺少HOSTS"""
        result = self.validator.validate_all_configurations()

        assert result['is_valid'] is False
        assert any("HOSTS" in error for error in result['errors'])
        assert any("SNS_TOPIC_ARN未设置" in warning for warning in result['warnings'])

    @patch.dict(os.environ, {'HOSTS': 'not a host, also bad'}, clear=True)
    def test_no_valid_hosts(self):
        """测试没有有效主机"""
        result = self.validator.validate_hosts_configuration()

        assert result['is_valid'] is False
        assert result['invalid_hosts'] == ['not a host', 'also bad']
        assert "没有找到有效的主机" in result['errors']

    @patch.dict(os.environ, {'HOSTS': 'example.com', 'SNS_TOPIC_ARN': 'invalid-arn'}, clear=True)
    def test_invalid_sns_arn_is_warning(self):
        """测试SNS配置错误只作为警告"""
        result = self.validator.validate_all_configurations()

        assert result['is_valid'] is True
        assert any("SNS主题ARN格式无效" in warning for warning in result['warnings'])

    @patch.dict(os.environ, {'FETCH_TIMEOUT_MS': '500', 'FETCH_PORT': '8443'}, clear=True)
    def test_fetcher_configuration_warnings(self):
        """测试超时过短给出警告"""
        result = self.validator.validate_fetcher_configuration()

        assert result['is_valid'] is True
        assert result['timeout_ms'] == 500
        assert result['port'] == 8443
        assert any("超时时间过短" in warning for warning in result['warnings'])

    @pytest.mark.parametrize("env", [
        {'FETCH_TIMEOUT_MS': 'abc'},
        {'FETCH_TIMEOUT_MS': '0'},
        {'FETCH_PORT': '70000'},
        {'FETCH_PORT': 'https'},
        {'WARNING_DAYS': 'soon'},
        {'CRITICAL_DAYS': '-1'},
    ])
    def test_fetcher_configuration_errors(self, env):
        """测试无效的获取器配置"""
        with patch.dict(os.environ, env, clear=True):
            result = self.validator.validate_fetcher_configuration()

        assert result['is_valid'] is False
        assert result['errors']

    @patch.dict(os.environ, {'WARNING_DAYS': '5', 'CRITICAL_DAYS': '10'}, clear=True)
    def test_threshold_order_warning(self):
        """测试紧急天数大于提醒天数时给出警告"""
        result = self.validator.validate_fetcher_configuration()

        assert result['is_valid'] is True
        assert any("紧急提醒天数(10)大于提醒天数(5)" in warning for warning in result['warnings'])

    @patch.dict(os.environ, {'HOSTS': 'example.com', 'SNS_TOPIC_ARN': VALID_ARN}, clear=True)
    def test_sanitized_env_values(self):
        """测试敏感环境变量被隐藏"""
        result = self.validator.validate_environment_variables()

        assert result['present_vars']['SNS_TOPIC_ARN'] == 'arn:aws:sns:***:123456789012:cert-alerts'
        assert result['present_vars']['HOSTS'] == 'example.com'

    @patch.dict(os.environ, {'HOSTS': 'example.com'}, clear=True)
    def test_configuration_summary(self):
        """测试配置摘要"""
        summary = self.validator.get_configuration_summary()

        assert "✅ 配置验证通过" in summary
        assert "有效主机数量: 1" in summary


class TestFetcherSettings:
    """获取器配置测试类"""

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        """测试默认值"""
        settings = FetcherSettings.from_env()

        assert settings.timeout_ms == 10000
        assert settings.port == 443

    @patch.dict(os.environ, {'FETCH_TIMEOUT_MS': '2500', 'FETCH_PORT': '8443'}, clear=True)
    def test_from_env(self):
        """测试从环境变量读取"""
        settings = FetcherSettings.from_env()

        assert settings.timeout_ms == 2500
        assert settings.port == 8443

    @patch.dict(os.environ, {'FETCH_TIMEOUT_MS': 'abc', 'FETCH_PORT': '-1'}, clear=True)
    def test_invalid_values_fall_back(self):
        """测试无效值回退到默认值"""
        settings = FetcherSettings.from_env()

        assert settings.timeout_ms == 10000
        assert settings.port == 443
