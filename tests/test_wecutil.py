"""
Tests for the wecutil wrapper.
"""
import pytest

from wecsubs.exceptions import SubscriptionDeleteError, WecutilError
from wecsubs.remoting import CommandResult
from wecsubs.wecutil import Outcome, Wecutil

from conftest import BENIGN_CREATE_ERROR, FakeWecHost


class TestClassify:
    """Tests for classifying wecutil error text."""

    def setup_method(self):
        self.wecutil = Wecutil(FakeWecHost())

    def test_success(self):
        assert self.wecutil.classify(CommandResult(0, '', '')) is Outcome.SUCCESS

    def test_benign_code_is_a_warning(self):
        assert self.wecutil.classify(CommandResult(0, '', BENIGN_CREATE_ERROR)) is Outcome.WARNING
        assert self.wecutil.classify(CommandResult(15080, '', BENIGN_CREATE_ERROR.upper())) is Outcome.WARNING

    def test_other_error_text(self):
        result = CommandResult(0, '', 'Failed to create subscription. Error = 0x57.')
        assert self.wecutil.classify(result) is Outcome.ERROR

    def test_non_zero_status_without_text(self):
        assert self.wecutil.classify(CommandResult(5, '', '')) is Outcome.ERROR

    def test_configured_codes(self):
        wecutil = Wecutil(FakeWecHost(), benign_codes=['0x3AEA'])
        assert wecutil.classify(CommandResult(1, '', 'Error = 0x3aea.')) is Outcome.WARNING
        assert wecutil.classify(CommandResult(1, '', BENIGN_CREATE_ERROR)) is Outcome.ERROR


class TestCommands:
    """Tests for the wecutil sub-commands."""

    def test_service_status(self, host):
        wecutil = Wecutil(host)
        assert wecutil.service_status() == 'RUNNING'
        assert wecutil.service_running()
        host.service_state = 'STOPPED'
        assert not wecutil.service_running()
        assert host.calls[-1] == ['sc.exe', 'query', 'wecsvc']

    def test_enumerate(self, host):
        assert Wecutil(host).enumerate() == ['Test1', 'TestB', 'Prod']
        assert host.calls[-1] == ['wecutil.exe', 'es']

    def test_get_xml(self, host):
        xml_text = Wecutil(host).get_xml('Test1')
        assert '<SubscriptionId>Test1</SubscriptionId>' in xml_text
        assert host.calls[-1] == ['wecutil.exe', 'gs', 'Test1', '/f:xml']

    def test_get_xml_missing(self, host):
        with pytest.raises(WecutilError):
            Wecutil(host).get_xml('Nope')

    def test_delete_failure(self, host):
        host.delete_error = 'Failed to delete subscription. Access is denied.'
        with pytest.raises(SubscriptionDeleteError):
            Wecutil(host).delete('Test1')
        assert 'Test1' in host.subscriptions

    def test_runtime_status(self, host):
        assert 'RunTimeStatus: Active' in Wecutil(host).runtime_status('Test1')

    def test_from_config(self, host, config):
        config._config['wecutil']['path'] = 'C:\\Windows\\System32\\wecutil.exe'
        wecutil = Wecutil.from_config(host, config)
        assert wecutil.path == 'C:\\Windows\\System32\\wecutil.exe'
        assert wecutil.benign_codes == ('0x3ae8',)
