"""
End-to-end tests of SubscriptionManager against a fake WEC host.
"""
from datetime import timedelta

import pytest

from wecsubs.exceptions import ServiceNotRunningError, SubscriptionNotFoundError
from wecsubs.manager import SubscriptionManager
from wecsubs.mutator import SubscriptionChanges
from wecsubs.subscription import Subscription
from wecsubs.wecutil import Outcome

from conftest import BENIGN_CREATE_ERROR


@pytest.fixture
def manager(host, config):
    return SubscriptionManager(executor=host, config=config)


def stored(host, name):
    return Subscription.from_xml(host.subscriptions[name], host.computer_name)


class TestSubscriptionManager:
    """Tests for SubscriptionManager."""

    def test_get_with_wildcard(self, manager):
        assert [s.name for s in manager.get('Test*')] == ['Test1', 'TestB']

    def test_set_reads_fresh_document(self, manager, host, sample_xml):
        stale = manager.get('Test1')[0]
        host.subscriptions['Test1'] = sample_xml('Test1').replace(
            'Forward security events', 'changed elsewhere'
        )
        manager.set(stale, SubscriptionChanges(log_file='Custom/Operational'))

        current = stored(host, 'Test1')
        assert current.description == 'changed elsewhere'
        assert current.log_file == 'Custom/Operational'

    def test_set_batching_switches_to_custom(self, manager, host):
        result = manager.set('Test1', SubscriptionChanges(max_latency=timedelta(seconds=30), max_items=1))

        assert result.outcome is Outcome.SUCCESS
        current = stored(host, 'Test1')
        assert current.configuration_mode == 'Custom'
        assert current.max_latency == timedelta(seconds=30)
        assert current.max_items == 1

    def test_set_with_pass_thru(self, manager):
        result = manager.set('Test1', SubscriptionChanges(name='Renamed'), pass_thru=True)
        assert result.subscription is not None
        assert result.subscription.name == 'Renamed'

    def test_set_domain_computers_resolves_on_host(self, manager, host):
        host.identities['CONTOSO\\Domain Computers'] = 'S-1-5-21-1-2-3-515'
        manager.set('Test1', SubscriptionChanges(
            source_domain_computers=['CONTOSO\\Domain Computers', 'CONTOSO\\Unknown', 'S-1-5-21-1-2-3-1105']
        ))
        assert stored(host, 'Test1').source_domain_computers == ['S-1-5-21-1-2-3-515', 'S-1-5-21-1-2-3-1105']

    def test_set_without_changes(self, manager, host):
        assert manager.set('Test1', SubscriptionChanges()) is None
        assert host.verbs() == []

    def test_set_missing_subscription(self, manager):
        with pytest.raises(SubscriptionNotFoundError):
            manager.set('Missing', SubscriptionChanges(enabled=True))

    def test_set_with_stopped_service(self, manager, host):
        host.service_state = 'STOPPED'
        with pytest.raises(ServiceNotRunningError):
            manager.set('Test1', SubscriptionChanges(enabled=True))
        assert host.verbs() == []

    def test_recreate_warning_is_not_fatal(self, manager, host):
        host.create_error = (0, BENIGN_CREATE_ERROR)
        result = manager.disable('Test1')
        assert result.outcome is Outcome.WARNING
        assert stored(host, 'Test1').enabled is False

    def test_enable(self, manager, host):
        manager.disable('Prod')
        assert stored(host, 'Prod').enabled is False
        manager.enable('Prod')
        assert stored(host, 'Prod').enabled is True

    def test_remove(self, manager, host):
        manager.remove('Prod')
        assert 'Prod' not in host.subscriptions

    def test_export(self, manager, tmp_path):
        path = manager.export('Test1', tmp_path / 'out' / 'Test1.xml')
        exported = Subscription.from_xml(path.read_text(encoding='utf-8'), 'file')
        assert exported.name == 'Test1'

    def test_runtime_status_and_retry(self, manager, host):
        assert 'Active' in manager.runtime_status('Test1')
        assert manager.retry('Test1') is Outcome.SUCCESS
        assert host.verbs()[-1] == 'rs'

    def test_access_right_from_config(self, host, config):
        config._config['security']['access_right'] = 'GA'
        manager = SubscriptionManager(executor=host, config=config)
        manager.set('Test1', SubscriptionChanges(source_domain_computers=['S-1-5-21-1-2-3-515']))
        assert stored(host, 'Test1').allowed_source_domain_computers == 'O:NSG:BAD:P(A;;GA;;;S-1-5-21-1-2-3-515)S:'
