"""
Shared fixtures: subscription documents and a fake WEC host.
"""
import re

import pytest

from wecsubs.config import Config
from wecsubs.exceptions import TempFileError
from wecsubs.remoting import CommandResult, HostExecutor

SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Subscription xmlns="http://schemas.microsoft.com/2006/03/windows/events/subscription">
	<SubscriptionId>{name}</SubscriptionId>
	<SubscriptionType>SourceInitiated</SubscriptionType>
	<Description>Forward security events</Description>
	<Enabled>true</Enabled>
	<Uri>http://schemas.microsoft.com/wbem/wsman/1/windows/EventLog</Uri>
	<ConfigurationMode>Normal</ConfigurationMode>
	<Delivery Mode="Push">
		<Batching>
			<MaxItems>5</MaxItems>
			<MaxLatencyTime>900000</MaxLatencyTime>
		</Batching>
		<PushSettings>
			<Heartbeat Interval="900000"/>
		</PushSettings>
	</Delivery>
	<Query>
		<![CDATA[
<QueryList>
  <Query Id="0">
    <Select Path="Security">*</Select>
  </Query>
</QueryList>
		]]>
	</Query>
	<ReadExistingEvents>false</ReadExistingEvents>
	<TransportName>HTTP</TransportName>
	<ContentFormat>RenderedText</ContentFormat>
	<Locale Language="en-US"/>
	<LogFile>ForwardedEvents</LogFile>
	<PublisherName>Microsoft-Windows-EventCollector</PublisherName>
	<AllowedSourceNonDomainComputers>
		<AllowedIssuerCAList>
		</AllowedIssuerCAList>
	</AllowedSourceNonDomainComputers>
	<AllowedSourceDomainComputers>O:NSG:BAD:P(A;;GA;;;DC)S:</AllowedSourceDomainComputers>
</Subscription>
"""

MINIMAL_XML = """<Subscription xmlns="http://schemas.microsoft.com/2006/03/windows/events/subscription">
	<SubscriptionId>{name}</SubscriptionId>
	<SubscriptionType>SourceInitiated</SubscriptionType>
	<Enabled>false</Enabled>
	<Uri>http://schemas.microsoft.com/wbem/wsman/1/windows/EventLog</Uri>
	<Query><![CDATA[<QueryList><Query Id="0"><Select Path="System">*</Select></Query></QueryList>]]></Query>
	<LogFile>ForwardedEvents</LogFile>
</Subscription>
"""

BENIGN_CREATE_ERROR = (
    "Warning: The subscription is saved successfully, but it can't be activated at this time. "
    "Use retry-subscription command to retry the subscription. Error = 0x3ae8."
)

_SUBSCRIPTION_ID = re.compile(r'<SubscriptionId>([^<]*)</SubscriptionId>')
_ACCOUNT = re.compile(r"NTAccount\('((?:[^']|'')*)'\)")


class FakeWecHost(HostExecutor):
    """In-memory stand-in for a host running wecsvc and wecutil."""

    def __init__(self, subscriptions=None, computer_name='WEC01', service_state='RUNNING'):
        self.computer_name = computer_name
        self.subscriptions = dict(subscriptions or {})
        self.service_state = service_state
        self.identities = {}
        self.files = {}
        self.removed = []
        self.calls = []
        self.create_error = None
        self.delete_error = None
        self.get_errors = set()
        self.write_error = False

    def _lookup(self, name):
        for existing in self.subscriptions:
            if existing.lower() == name.lower():
                return existing
        return None

    def run_cmd(self, command, args=()):
        args = list(args)
        self.calls.append([command, *args])
        if command == 'sc.exe':
            return CommandResult(
                0,
                "SERVICE_NAME: wecsvc\n"
                "        TYPE               : 20  WIN32_SHARE_PROCESS\n"
                f"        STATE              : 4  {self.service_state}\n",
                ''
            )

        verb = args[0]
        if verb == 'es':
            return CommandResult(0, ''.join(f"{n}\r\n" for n in self.subscriptions), '')
        if verb == 'gs':
            name = self._lookup(args[1])
            if name is None or name in self.get_errors:
                return CommandResult(1, '', 'Failed to open subscription. The system cannot find the file specified.')
            return CommandResult(0, self.subscriptions[name], '')
        if verb == 'ds':
            if self.delete_error:
                return CommandResult(1, '', self.delete_error)
            name = self._lookup(args[1])
            if name is None:
                return CommandResult(1, '', 'Failed to delete subscription. The system cannot find the file specified.')
            del self.subscriptions[name]
            return CommandResult(0, '', '')
        if verb == 'cs':
            content = self.files[args[1]]
            name = _SUBSCRIPTION_ID.search(content).group(1)
            if self.create_error:
                status_code, text = self.create_error
                if '0x3ae8' in text:
                    self.subscriptions[name] = content
                return CommandResult(status_code, '', text)
            self.subscriptions[name] = content
            return CommandResult(0, '', '')
        if verb == 'gr':
            return CommandResult(0, f"Subscription: {args[1]}\n\tRunTimeStatus: Active\n\tLastError: 0\n", '')
        if verb == 'rs':
            return CommandResult(0, '', '')
        return CommandResult(1, '', f"Unknown command {verb}")

    def run_ps(self, script):
        self.calls.append(['powershell', script])
        match = _ACCOUNT.search(script)
        if match:
            account = match.group(1).replace("''", "'")
            if account in self.identities:
                return CommandResult(0, self.identities[account] + '\r\n', '')
            return CommandResult(
                1, '', 'Exception calling "Translate": "Some or all identity references could not be translated."'
            )
        return CommandResult(0, '', '')

    def write_temp_file(self, content):
        if self.write_error:
            raise TempFileError("Could not write temporary file: access denied")
        path = f"C:\\Windows\\Temp\\{self.temp_file_name()}"
        self.files[path] = content
        return path

    def remove_file(self, path):
        self.removed.append(path)
        self.files.pop(path, None)

    def verbs(self):
        """wecutil sub-commands called so far, in order."""
        return [call[1] for call in self.calls if call[0] == 'wecutil.exe']


@pytest.fixture
def sample_xml():
    """Build a complete subscription document for ``name``."""
    return lambda name='Test1': SAMPLE_XML.format(name=name)


@pytest.fixture
def minimal_xml():
    """Build a subscription document without optional elements for ``name``."""
    return lambda name='Minimal': MINIMAL_XML.format(name=name)


@pytest.fixture
def host(sample_xml):
    return FakeWecHost({
        'Test1': sample_xml('Test1'),
        'TestB': sample_xml('TestB'),
        'Prod': sample_xml('Prod'),
    })


@pytest.fixture
def config(tmp_path):
    """Configuration without a YAML file."""
    return Config(config_path=str(tmp_path / 'missing.yaml'))
