"""
Locksmith Command Line Interface.

Provides commands for creating, rotating and inspecting signing secrets kept
in a JSON file store, and for signing and verifying tokens with them.
"""

import argparse
import json
import logging
import os
import sys
import time
from typing import List, Optional

from locksmith import config
from locksmith.errors import LocksmithError, TokenError
from locksmith.notifiers import notifiers_from_env
from locksmith.storage import FileSecretStore
from locksmith.tokens import JWTManager


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def _open_manager(args: argparse.Namespace) -> JWTManager:
    """Load the working set from the store, creating the first secret if needed."""
    store_path = args.store or os.environ.get('LOCKSMITH_STORE_PATH') or config.STORE_PATH
    return JWTManager.create(
        config.policy_from_env(),
        FileSecretStore(store_path),
        secret_size_bytes=config.secret_bytes_from_env(),
        notifier=notifiers_from_env(),
        algorithm=os.environ.get('LOCKSMITH_ALGORITHM', config.ALGORITHM),
    )


def cmd_init(args: argparse.Namespace) -> int:
    """Create the store and its first secret."""
    manager = _open_manager(args)
    try:
        active = manager.manager.active_secret
        print(f"Active secret: {active.id}")
        return 0
    finally:
        manager.manager.close()


def cmd_rotate(args: argparse.Namespace) -> int:
    """Rotate to a new secret."""
    manager = _open_manager(args)
    try:
        secret = manager.rotate()
        print(f"Rotated. New active secret: {secret.id}")
        return 0
    finally:
        manager.manager.close()


def cmd_status(args: argparse.Namespace) -> int:
    """Show the secrets currently accepted for validation."""
    manager = _open_manager(args)
    try:
        engine = manager.manager
        now = engine.now()
        secrets = engine.get_secrets()
        if args.json:
            rows = []
            for secret in secrets:
                row = secret.to_record(include_value=False)
                row["active"] = secret.active
                row["age_seconds"] = int(secret.age(now).total_seconds())
                rows.append(row)
            print(json.dumps({
                "rotation_interval_seconds": engine.policy.rotation_interval.total_seconds(),
                "grace_period_seconds": engine.policy.grace_period.total_seconds(),
                "secrets": rows,
            }, indent=2))
        else:
            print(f"Rotation interval: {engine.policy.rotation_interval}")
            print(f"Grace period:      {engine.policy.grace_period}")
            for secret in secrets:
                marker = "*" if secret.active else " "
                print(f" {marker} {secret.id}  created {secret.created_at.isoformat()}  age {secret.age(now)}")
        return 0
    finally:
        manager.manager.close()


def cmd_sign(args: argparse.Namespace) -> int:
    """Sign a message or JSON claim set."""
    if args.json:
        try:
            claims = json.loads(args.message)
        except json.JSONDecodeError as e:
            print(f"Error: Invalid JSON message: {e}", file=sys.stderr)
            return 1
        if not isinstance(claims, dict):
            print("Error: JSON message must be an object", file=sys.stderr)
            return 1
    else:
        claims = {"message": args.message}

    manager = _open_manager(args)
    try:
        print(manager.sign(claims, expiry_seconds=args.expires_in))
        return 0
    finally:
        manager.manager.close()


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify a token against the current working set."""
    manager = _open_manager(args)
    try:
        claims = manager.validate(args.token)
    except TokenError as e:
        if args.json:
            print(json.dumps({"valid": False, "error": type(e).__name__, "message": str(e)}))
        else:
            print(f"❌ INVALID: {e}")
        return 1
    finally:
        manager.manager.close()

    if args.json:
        print(json.dumps({"valid": True, "claims": claims}, indent=2))
    else:
        print("✅ VALID")
        print(f"   Claims: {json.dumps(claims)}")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Print the active secret as hex."""
    manager = _open_manager(args)
    try:
        print(manager.export_active_secret_hex())
        return 0
    finally:
        manager.manager.close()


def cmd_run(args: argparse.Namespace) -> int:
    """Rotate on the configured interval until interrupted."""
    manager = _open_manager(args)
    engine = manager.manager
    try:
        engine.start_auto_rotation()
        print(f"Rotating every {engine.policy.rotation_interval}. Press Ctrl+C to stop.")
        while engine.is_auto_rotating:
            time.sleep(1.0)
        return 0
    except KeyboardInterrupt:
        return 0
    finally:
        engine.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog='locksmith',
        description='Locksmith - rotating HMAC secrets for JWT signing'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')
    parser.add_argument('--store', help='Path to the JSON secret store (default: $LOCKSMITH_STORE_PATH)')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('init', help='Create the store and its first secret')
    subparsers.add_parser('rotate', help='Rotate to a new secret')

    p_status = subparsers.add_parser('status', help='Show active and previous secrets')
    p_status.add_argument('--json', action='store_true', help='Output as JSON')

    p_sign = subparsers.add_parser('sign', help='Sign a message or claim set')
    p_sign.add_argument('message', help='The message to sign')
    p_sign.add_argument('--json', action='store_true', help='Parse message as a JSON claim set')
    p_sign.add_argument('--expires-in', type=int, default=None, help='Token lifetime in seconds')

    p_verify = subparsers.add_parser('verify', help='Verify a token')
    p_verify.add_argument('token', help='The token to verify')
    p_verify.add_argument('--json', action='store_true', help='Output as JSON')

    subparsers.add_parser('export', help='Print the active secret as hex')
    subparsers.add_parser('run', help='Rotate periodically until interrupted')

    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    commands = {
        'init': cmd_init,
        'rotate': cmd_rotate,
        'status': cmd_status,
        'sign': cmd_sign,
        'verify': cmd_verify,
        'export': cmd_export,
        'run': cmd_run,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    try:
        return handler(args)
    except LocksmithError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
