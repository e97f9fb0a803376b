"""
Tests for the command-line interface.
"""
import argparse
import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from wecsubs.cli import EXIT_FAILED, EXIT_FATAL, EXIT_OK, WecSubsCLI, format_table, parse_bool, parse_duration
from wecsubs.manager import SubscriptionManager
from wecsubs.subscription import Subscription


@pytest.fixture
def cli(host):
    with patch('wecsubs.cli.setup_logging'):
        yield WecSubsCLI(manager_factory=lambda **kwargs: SubscriptionManager(executor=host, config=kwargs['config']))


def stored(host, name):
    return Subscription.from_xml(host.subscriptions[name], host.computer_name)


@pytest.mark.parametrize('value, expected', [
    ('500ms', timedelta(milliseconds=500)),
    ('30s', timedelta(seconds=30)),
    ('5m', timedelta(minutes=5)),
    ('2h', timedelta(hours=2)),
    ('1d', timedelta(days=1)),
    ('1500', timedelta(milliseconds=1500)),
])
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_parse_duration_invalid():
    with pytest.raises(argparse.ArgumentTypeError):
        parse_duration('soon')


def test_parse_bool():
    assert parse_bool('Yes') is True
    assert parse_bool('off') is False
    with pytest.raises(argparse.ArgumentTypeError):
        parse_bool('maybe')


def test_format_table():
    text = format_table([{'computer_name': 'WEC01', 'name': 'Test1', 'enabled': True}])
    lines = text.splitlines()
    assert lines[0].startswith('ComputerName')
    assert 'Test1' in lines[2]
    assert 'True' in lines[2]


class TestCLI:
    """Tests for WecSubsCLI commands."""

    def test_get_json(self, cli, capsys):
        assert cli.run(['get', 'Test*', '--format', 'json']) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert [item['name'] for item in data] == ['Test1', 'TestB']

    def test_get_table(self, cli, capsys):
        assert cli.run(['get']) == EXIT_OK
        out = capsys.readouterr().out
        assert 'Prod' in out
        assert 'ForwardedEvents' in out

    def test_set(self, cli, host):
        code = cli.run([
            'set', 'Test1',
            '--description', 'from cli',
            '--max-latency', '30s',
            '--query', '<Select Path="System">*</Select>',
            '--source-non-domain-dns-list', '*.contoso.com', 'dmz.example.org',
        ])
        assert code == EXIT_OK
        current = stored(host, 'Test1')
        assert current.description == 'from cli'
        assert current.max_latency == timedelta(seconds=30)
        assert current.configuration_mode == 'Custom'
        assert '<Select Path="System">*</Select>' in current.query
        assert current.source_non_domain_dns_list == ['*.contoso.com', 'dmz.example.org']

    def test_set_with_wildcard(self, cli, host):
        assert cli.run(['set', 'Test*', '--enabled', 'false']) == EXIT_OK
        assert stored(host, 'Test1').enabled is False
        assert stored(host, 'TestB').enabled is False
        assert stored(host, 'Prod').enabled is True

    def test_rename_many_is_refused(self, cli, host):
        assert cli.run(['set', 'Test*', '--new-name', 'Same']) == EXIT_FAILED
        assert 'Same' not in host.subscriptions

    def test_set_create_failure(self, cli, host):
        host.create_error = (1, 'Error = 0x57.')
        assert cli.run(['disable', 'Prod']) == EXIT_FAILED

    def test_service_not_running(self, cli, host):
        host.service_state = 'STOPPED'
        assert cli.run(['get']) == EXIT_FATAL

    def test_debug_level_from_config_logs_traceback(self, cli, host, tmp_path, caplog):
        config_file = tmp_path / 'wecsubs.yaml'
        config_file.write_text('logging:\n  level: debug\n', encoding='utf-8')
        host.service_state = 'STOPPED'

        assert cli.run(['--config', str(config_file), 'get']) == EXIT_FATAL
        assert 'Detailed error:' in caplog.text

    def test_enable_disable_remove(self, cli, host):
        assert cli.run(['disable', 'Prod']) == EXIT_OK
        assert stored(host, 'Prod').enabled is False
        assert cli.run(['enable', 'Prod']) == EXIT_OK
        assert stored(host, 'Prod').enabled is True
        assert cli.run(['remove', 'Prod']) == EXIT_OK
        assert 'Prod' not in host.subscriptions

    def test_export(self, cli, tmp_path, capsys):
        target = tmp_path / 'Test1.xml'
        assert cli.run(['export', 'Test1', str(target)]) == EXIT_OK
        assert target.exists()
        assert str(target) in capsys.readouterr().out

    def test_status(self, cli, capsys):
        assert cli.run(['status', 'Test1']) == EXIT_OK
        assert 'RunTimeStatus' in capsys.readouterr().out

    def test_version(self, cli, capsys):
        assert cli.run(['version']) == EXIT_OK
        assert capsys.readouterr().out.startswith('wecsubs ')
