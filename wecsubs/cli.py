"""
Command-line interface for managing event collector subscriptions.
"""
import argparse
import getpass
import json
import logging
import re
import sys
from datetime import datetime, timedelta
from typing import List, Optional

from . import __version__
from .config import load_config
from .env_utils import WINRM_TRANSPORTS, settings_from_config
from .exceptions import WecSubscriptionError
from .manager import SubscriptionManager
from .mutator import SubscriptionChanges
from .schema import CONFIGURATION_MODES, CONTENT_FORMATS, TRANSPORTS

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2

TABLE_COLUMNS = [
    ('computer_name', 'ComputerName'),
    ('name', 'Name'),
    ('enabled', 'Enabled'),
    ('configuration_mode', 'Mode'),
    ('content_format', 'ContentFormat'),
    ('log_file', 'LogFile'),
    ('description', 'Description'),
]


def parse_duration(value: str) -> timedelta:
    """Parse '500ms', '30s', '5m', '2h', '1d' or plain milliseconds into a timedelta."""
    s = value.strip().lower()
    m = re.fullmatch(r'(\d+)\s*(ms|s|m|h|d)?', s)
    if not m:
        raise argparse.ArgumentTypeError(f"Invalid duration '{value}'. Use like 500ms/30s/5m/2h/1d.")
    n = int(m.group(1))
    unit = m.group(2) or 'ms'
    if unit == 'ms':
        return timedelta(milliseconds=n)
    if unit == 's':
        return timedelta(seconds=n)
    if unit == 'm':
        return timedelta(minutes=n)
    if unit == 'h':
        return timedelta(hours=n)
    return timedelta(days=n)


def parse_bool(value: str) -> bool:
    s = value.strip().lower()
    if s in ('true', '1', 't', 'y', 'yes', 'on'):
        return True
    if s in ('false', '0', 'f', 'n', 'no', 'off'):
        return False
    raise argparse.ArgumentTypeError(f"Invalid boolean '{value}'")


def parse_timestamp(value: str) -> datetime:
    s = value.strip()
    if s.endswith('Z'):
        s = s[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid timestamp '{value}', expected ISO 8601")


def setup_logging(level: str, fmt: str, log_file: Optional[str] = None) -> None:
    """Configure root logging for the command-line tool."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=fmt,
                        handlers=handlers, force=True)


def format_table(rows: List[dict]) -> str:
    """Render subscriptions as a plain text table."""
    headers = [title for _, title in TABLE_COLUMNS]
    cells = [
        ['' if row.get(key) is None else str(row.get(key)) for key, _ in TABLE_COLUMNS]
        for row in rows
    ]
    widths = [max(len(h), *(len(r[i]) for r in cells)) if cells else len(h)
              for i, h in enumerate(headers)]
    lines = [
        '  '.join(h.ljust(w) for h, w in zip(headers, widths)).rstrip(),
        '  '.join('-' * w for w in widths),
    ]
    for r in cells:
        lines.append('  '.join(c.ljust(w) for c, w in zip(r, widths)).rstrip())
    return '\n'.join(lines)


class WecSubsCLI:
    """Command-line interface for WEC subscriptions."""

    def __init__(self, manager_factory=SubscriptionManager):
        """Initialize the CLI.

        Args:
            manager_factory: Callable building a SubscriptionManager from keyword arguments
        """
        self.parser = self._create_parser()
        self.manager_factory = manager_factory

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser.

        Returns:
            Configured argument parser
        """
        parser = argparse.ArgumentParser(
            prog='wecsubs',
            description='Manage Windows Event Collector subscriptions',
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )

        # Global arguments
        parser.add_argument('--computer-name', '-c', default=None,
                            help='Target host (default: local machine)')
        parser.add_argument('--username', '-u', default=None, help='User name for WinRM')
        parser.add_argument('--password', '-p', default=None,
                            help='Password for WinRM (prompted when a user name is given without one)')
        parser.add_argument('--transport', choices=WINRM_TRANSPORTS, default=None,
                            help='WinRM authentication transport')
        parser.add_argument('--use-ssl', action='store_true', default=None, help='Connect over HTTPS')
        parser.add_argument('--config', type=str, default=None, help='Path to a YAML configuration file')
        parser.add_argument(
            '--log-level',
            type=str,
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
            default=None,
            help='Logging level'
        )

        subparsers = parser.add_subparsers(dest='command', help='Command to run')

        get_parser = subparsers.add_parser('get', help='Show subscriptions')
        get_parser.add_argument('names', nargs='*', default=['*'], help='Names or wildcard patterns')
        get_parser.add_argument('--format', choices=['table', 'json', 'xml'], default='table',
                                help='Output format')

        set_parser = subparsers.add_parser('set', help='Change subscription properties')
        set_parser.add_argument('names', nargs='+', help='Names or wildcard patterns')
        set_parser.add_argument('--new-name', help='Rename the subscription')
        set_parser.add_argument('--description')
        set_parser.add_argument('--enabled', type=parse_bool, metavar='BOOL')
        set_parser.add_argument('--read-existing-events', type=parse_bool, metavar='BOOL')
        set_parser.add_argument('--content-format', choices=CONTENT_FORMATS)
        set_parser.add_argument('--log-file')
        set_parser.add_argument('--locale')
        set_parser.add_argument('--configuration-mode', choices=CONFIGURATION_MODES)
        set_parser.add_argument('--query', action='append', metavar='FILTER',
                                help='<Select>/<Suppress> filter; repeat to combine')
        set_parser.add_argument('--max-latency', type=parse_duration, metavar='DURATION')
        set_parser.add_argument('--max-items', type=int)
        set_parser.add_argument('--heartbeat-interval', type=parse_duration, metavar='DURATION')
        set_parser.add_argument('--subscription-transport', choices=TRANSPORTS, dest='subscription_transport',
                                help='Transport sources use to deliver events')
        set_parser.add_argument('--expires', type=parse_timestamp, metavar='TIMESTAMP')
        set_parser.add_argument('--source-domain-computers', nargs='+', metavar='ACCOUNT_OR_SID')
        set_parser.add_argument('--source-non-domain-dns-list', nargs='+', metavar='DNS')
        set_parser.add_argument('--source-non-domain-issuer-ca-thumbprint', nargs='+', metavar='THUMBPRINT')
        set_parser.add_argument('--pass-thru', action='store_true', help='Show the updated subscriptions')

        for command, text in (('enable', 'Enable subscriptions'), ('disable', 'Disable subscriptions')):
            p = subparsers.add_parser(command, help=text)
            p.add_argument('names', nargs='+', help='Names or wildcard patterns')

        remove_parser = subparsers.add_parser('remove', help='Delete subscriptions')
        remove_parser.add_argument('names', nargs='+', help='Names or wildcard patterns')

        export_parser = subparsers.add_parser('export', help='Write a subscription document to a file')
        export_parser.add_argument('name', help='Subscription name')
        export_parser.add_argument('path', help='Output file')

        status_parser = subparsers.add_parser('status', help='Show subscription runtime status')
        status_parser.add_argument('name', help='Subscription name')

        retry_parser = subparsers.add_parser('retry', help='Retry inactive subscription sources')
        retry_parser.add_argument('name', help='Subscription name')

        subparsers.add_parser('version', help='Show version information')

        return parser

    def parse_args(self, args: Optional[list] = None) -> argparse.Namespace:
        """Parse command-line arguments.

        Args:
            args: Command-line arguments (default: sys.argv[1:])

        Returns:
            Parsed arguments
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[list] = None) -> int:
        """Run the CLI.

        Args:
            args: Command-line arguments (default: sys.argv[1:])

        Returns:
            Exit code
        """
        parsed_args = self.parse_args(args)
        config = load_config(parsed_args.config)
        level = parsed_args.log_level or config.get('logging.level', 'INFO')
        setup_logging(level, config.get('logging.format'), config.get('logging.file'))

        if not parsed_args.command:
            self.parser.print_help()
            return EXIT_OK
        if parsed_args.command == 'version':
            print(f"wecsubs {__version__}")
            return EXIT_OK

        try:
            manager = self._create_manager(parsed_args, config)
            handler = getattr(self, f'handle_{parsed_args.command}')
            return handler(manager, parsed_args)
        except WecSubscriptionError as e:
            logger.error(f"Error: {str(e)}")
            if str(level).upper() == 'DEBUG':
                logger.exception("Detailed error:")
            return EXIT_FATAL
        except ValueError as e:
            logger.error(f"Invalid value: {e}")
            return EXIT_FATAL

    def _create_manager(self, args: argparse.Namespace, config) -> SubscriptionManager:
        password = args.password
        if args.username and password is None:
            password = getpass.getpass(f"Password for {args.username}: ")
        settings = settings_from_config(
            config,
            username=args.username,
            password=password,
            transport=args.transport,
            use_ssl=args.use_ssl,
        )
        return self.manager_factory(computer_name=args.computer_name, settings=settings, config=config)

    def _changes(self, args: argparse.Namespace) -> SubscriptionChanges:
        return SubscriptionChanges(
            name=args.new_name,
            description=args.description,
            enabled=args.enabled,
            read_existing_events=args.read_existing_events,
            content_format=args.content_format,
            log_file=args.log_file,
            locale=args.locale,
            configuration_mode=args.configuration_mode,
            query=args.query,
            max_latency=args.max_latency,
            max_items=args.max_items,
            heartbeat_interval=args.heartbeat_interval,
            transport=args.subscription_transport,
            expires=args.expires,
            source_domain_computers=args.source_domain_computers,
            source_non_domain_dns_list=args.source_non_domain_dns_list,
            source_non_domain_issuer_ca_thumbprint=args.source_non_domain_issuer_ca_thumbprint,
        )

    def handle_get(self, manager: SubscriptionManager, args: argparse.Namespace) -> int:
        subscriptions = manager.get(args.names)
        if args.format == 'json':
            print(json.dumps([s.to_dict() for s in subscriptions], indent=2))
        elif args.format == 'xml':
            for subscription in subscriptions:
                print(subscription.to_xml())
        elif subscriptions:
            print(format_table([s.to_dict() for s in subscriptions]))
        return EXIT_OK

    def _update_each(self, manager: SubscriptionManager, names: List[str],
                     changes: SubscriptionChanges, pass_thru: bool = False) -> int:
        targets = manager.get(names)
        if changes.name is not None and len(targets) > 1:
            logger.error(f"Cannot rename {len(targets)} subscriptions to '{changes.name}'")
            return EXIT_FAILED

        exit_code = EXIT_OK
        results = []
        for subscription in targets:
            try:
                result = manager.set(subscription.name, changes, pass_thru=pass_thru)
            except WecSubscriptionError as e:
                logger.error(str(e))
                exit_code = EXIT_FAILED
                continue
            if result is not None and result.subscription is not None:
                results.append(result.subscription.to_dict())
        if pass_thru and results:
            print(format_table(results))
        return exit_code

    def handle_set(self, manager: SubscriptionManager, args: argparse.Namespace) -> int:
        changes = self._changes(args)
        if changes.is_empty():
            logger.warning("No properties to change were given")
            return EXIT_OK
        return self._update_each(manager, args.names, changes, pass_thru=args.pass_thru)

    def handle_enable(self, manager: SubscriptionManager, args: argparse.Namespace) -> int:
        return self._update_each(manager, args.names, SubscriptionChanges(enabled=True))

    def handle_disable(self, manager: SubscriptionManager, args: argparse.Namespace) -> int:
        return self._update_each(manager, args.names, SubscriptionChanges(enabled=False))

    def handle_remove(self, manager: SubscriptionManager, args: argparse.Namespace) -> int:
        exit_code = EXIT_OK
        for subscription in manager.get(args.names):
            try:
                manager.remove(subscription.name)
            except WecSubscriptionError as e:
                logger.error(str(e))
                exit_code = EXIT_FAILED
        return exit_code

    def handle_export(self, manager: SubscriptionManager, args: argparse.Namespace) -> int:
        path = manager.export(args.name, args.path)
        print(str(path))
        return EXIT_OK

    def handle_status(self, manager: SubscriptionManager, args: argparse.Namespace) -> int:
        print(manager.runtime_status(args.name))
        return EXIT_OK

    def handle_retry(self, manager: SubscriptionManager, args: argparse.Namespace) -> int:
        manager.retry(args.name)
        return EXIT_OK


def main(args: Optional[list] = None) -> int:
    """Entry point for the ``wecsubs`` console script."""
    return WecSubsCLI().run(args)


if __name__ == '__main__':
    sys.exit(main())
