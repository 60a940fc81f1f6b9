#!/usr/bin/env python3
"""CLI entry point for the manifest applier.

Runs the reconciliation operations outside a test session:
- render:    fetch and decode a manifest, print the prepared documents
- apply:     create or update resources in a live API server
- delete:    delete resources from a live API server
- publish:   publish resources to a Nacos config center
- unpublish: delete resources from a Nacos config center

The CLI never registers teardown; resources stay until deleted.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from applier import Applier
from backends import KubeApiStore, NacosConfigCenter
from common import ApplierError
from config import ConfigError, load_timeout_config
from loader import ManifestFetcher

logger = logging.getLogger(__name__)

COMMANDS = {
    "render": "Fetch and decode a manifest, print the prepared documents",
    "apply": "Create or update manifest resources in an API server",
    "delete": "Delete manifest resources from an API server",
    "publish": "Publish manifest resources to a Nacos config center",
    "unpublish": "Delete manifest resources from a Nacos config center",
}


def _parse_label(value: str) -> tuple[str, str]:
    """Parse key=value from --label."""
    if '=' not in value:
        raise argparse.ArgumentTypeError(f"expected key=value, got {value!r}")
    key, val = value.split('=', 1)
    if not key:
        raise argparse.ArgumentTypeError(f"empty label key in {value!r}")
    return key, val


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='applier',
        description='Apply declarative manifests to a live API server or config center',
    )
    sub = parser.add_subparsers(dest='command', required=True)

    for name, help_text in COMMANDS.items():
        p = sub.add_parser(name, help=help_text, description=help_text)
        p.add_argument(
            '--file', '-f',
            required=True,
            help='Manifest location: bundle path or https:// URL',
        )
        p.add_argument(
            '--label',
            action='append',
            type=_parse_label,
            default=[],
            help='Namespace label key=value (repeatable)',
        )
        p.add_argument(
            '--ingress-class',
            help='spec.ingressClassName for Ingress resources',
        )
        p.add_argument(
            '--bundle',
            type=Path,
            help='Manifest bundle directory (override: APPLIER_MANIFESTS env var)',
        )
        p.add_argument(
            '--config',
            type=Path,
            help='Config file with timeouts (override: APPLIER_CONFIG env var)',
        )
        p.add_argument(
            '--verbose', '-v',
            action='store_true',
            help='Enable verbose logging',
        )

        if name in ('apply', 'delete'):
            p.add_argument('--server', required=True, help='API server URL')
            p.add_argument(
                '--token',
                default=os.environ.get('APPLIER_TOKEN'),
                help='Bearer token (default: APPLIER_TOKEN env var)',
            )
            p.add_argument('--ca-cert', type=Path, help='CA certificate for the API server')
            p.add_argument('--insecure', action='store_true', help='Skip TLS verification')
        elif name in ('publish', 'unpublish'):
            p.add_argument('--nacos', required=True, help='Nacos server URL')
            p.add_argument('--nacos-group', default='DEFAULT_GROUP', help='Nacos config group')
            p.add_argument('--nacos-tenant', help='Nacos namespace id')

    return parser


def run(args: argparse.Namespace) -> int:
    """Execute a parsed command."""
    timeout_config = load_timeout_config(args.config)
    applier = Applier(
        namespace_labels=dict(args.label),
        ingress_class=args.ingress_class,
        fetcher=ManifestFetcher(args.bundle),
    )

    if args.command == 'render':
        resources = applier.load(args.file, timeout_config)
        print('---\n'.join(r.to_yaml() for r in resources), end='')
        return 0

    if args.command in ('apply', 'delete'):
        store = KubeApiStore(
            server=args.server,
            token=args.token,
            ca_cert=args.ca_cert,
            insecure=args.insecure,
        )
        if args.command == 'apply':
            outcomes = applier.apply_with_cleanup(None, store, timeout_config, args.file, cleanup=False)
            for outcome in outcomes:
                logger.debug(f"Outcome: {outcome.value}")
            logger.info(f"Applied {len(outcomes)} resource(s) from {args.file}")
        else:
            applier.delete(store, timeout_config, args.file)
        return 0

    config_center = NacosConfigCenter(
        server=args.nacos,
        group=args.nacos_group,
        tenant=args.nacos_tenant,
        timeout=timeout_config.create_timeout,
        delete_timeout=timeout_config.delete_timeout,
    )
    if args.command == 'publish':
        applier.publish_config(None, config_center, timeout_config, args.file, cleanup=False)
    else:
        applier.delete_config(config_center, timeout_config, args.file)
    return 0


def main(argv=None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )

    try:
        return run(args)
    except (ApplierError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
