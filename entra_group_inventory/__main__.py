"""
Entra Group Hierarchy Inventory — Main Orchestrator

Usage:
    python -m entra_group_inventory                          # GroupGUIDs.csv -> GroupHierarchy.csv
    python -m entra_group_inventory --profile contoso-prod   # named profile
    python -m entra_group_inventory --config config.json     # JSON config file
    python -m entra_group_inventory -i seeds.csv -o out.csv --json
    python -m entra_group_inventory --cycle-policy none      # no cycle guard

Profile management:
    python -m entra_group_inventory profile add <name> --tenant-id ... --client-id ...
    python -m entra_group_inventory profile list
    python -m entra_group_inventory profile remove <name>
    python -m entra_group_inventory profile set-default <name>

This tool is READ-ONLY. It never modifies the directory.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from . import __version__
from .auth.authenticator import Authenticator, AuthenticationError
from .config import (
    AppConfig,
    CertificateAuth,
    DelegatedAuth,
    InventoryConfig,
    SecretAuth,
    CYCLE_POLICIES,
    DEFAULT_INPUT_FILE,
    DEFAULT_OUTPUT_FILE,
    REQUIRED_PERMISSIONS,
)
from .directory.client import GraphDirectoryClient
from .graph.client import GraphClient
from .inventory import CyclePolicy, HierarchyExpander, run_inventory
from .profiles import AUTH_MODES, ProfileStore, TenantProfile, resolve_profile
from .reporting import export_csv, export_json, read_seeds, InputFormatError
from .safety.guardian import SafetyGuardian

logger = logging.getLogger("entra_group_inventory")


# ---------------------------------------------------------------------------
# Profile management sub-commands
# ---------------------------------------------------------------------------

def _cmd_profile(args: argparse.Namespace) -> int:
    """Handle `profile add|list|remove|set-default` sub-commands."""
    action = args.profile_action
    store = ProfileStore.load()

    if action == "list":
        profiles = store.list_profiles()
        if not profiles:
            print("No profiles configured. Add one with:\n")
            print("  python -m entra_group_inventory profile add <name> \\")
            print("    --tenant-id <GUID> --client-id <GUID> --cert-path ./base64.txt")
            return 0
        print(f"\n  {'Name':<24s} {'Tenant ID':<38s} {'Client ID':<38s} {'Auth':<12s} {'Default'}")
        print(f"  {'-'*24} {'-'*38} {'-'*38} {'-'*12} {'-'*7}")
        for p in profiles:
            marker = "  *" if p.name == store.default_profile else ""
            label = p.name + (f" ({p.tenant_display_name})" if p.tenant_display_name else "")
            print(f"  {label:<24s} {p.tenant_id:<38s} {p.client_id:<38s} {p.auth_mode:<12s}{marker}")
        print()
        return 0

    if action == "add":
        if store.get(args.profile_name):
            print(f"  Profile '{args.profile_name}' already exists. It will be overwritten.")
        profile = TenantProfile(
            name=args.profile_name,
            tenant_id=args.tenant_id,
            client_id=args.client_id,
            auth_mode=args.auth_mode,
            cert_path=args.cert_path,
            tenant_display_name=args.display_name or "",
        )
        store.add(profile, set_default=args.set_default)
        print(f"  Profile '{profile.name}' saved.")
        if store.default_profile == profile.name:
            print("  Set as default profile.")
        return 0

    if action == "remove":
        if store.remove(args.profile_name):
            print(f"  Profile '{args.profile_name}' removed.")
            return 0
        print(f"  Profile '{args.profile_name}' not found.")
        return 1

    if action == "set-default":
        if store.set_default(args.profile_name):
            print(f"  Default profile set to '{args.profile_name}'.")
            return 0
        print(f"  Profile '{args.profile_name}' not found.")
        return 1

    print("Usage: python -m entra_group_inventory profile {add|list|remove|set-default}")
    return 0


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="entra_group_inventory",
        description="Entra nested group hierarchy inventory (READ-ONLY)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Management commands")
    prof_parser = subparsers.add_parser("profile", help="Manage tenant profiles")
    prof_sub = prof_parser.add_subparsers(dest="profile_action", help="Profile actions")

    add_p = prof_sub.add_parser("add", help="Add or update a tenant profile")
    add_p.add_argument("profile_name", help="Short name for the profile (e.g. 'contoso-prod')")
    add_p.add_argument("--tenant-id", required=True, help="Entra tenant ID (GUID)")
    add_p.add_argument("--client-id", required=True, help="App registration client ID (GUID)")
    add_p.add_argument("--auth-mode", choices=AUTH_MODES, default="certificate",
                       help="How to authenticate (default: certificate)")
    add_p.add_argument("--cert-path", default="./base64.txt",
                       help="Path to base64-encoded PFX (default: ./base64.txt)")
    add_p.add_argument("--display-name", help="Friendly tenant display name")
    add_p.add_argument("--set-default", action="store_true", help="Set as default profile")

    prof_sub.add_parser("list", help="List all configured profiles")

    rm_p = prof_sub.add_parser("remove", help="Remove a profile")
    rm_p.add_argument("profile_name", help="Name of the profile to remove")

    sd_p = prof_sub.add_parser("set-default", help="Set the default profile")
    sd_p.add_argument("profile_name", help="Name of the profile to set as default")

    # --- Run options ---
    parser.add_argument("--input", "-i", type=Path, default=None,
                        help=f"Seed CSV with a GroupGUID column (default: {DEFAULT_INPUT_FILE})")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help=f"Report CSV to write (default: {DEFAULT_OUTPUT_FILE})")
    parser.add_argument("--json", action="store_true",
                        help="Also write a JSON export next to the CSV report")
    parser.add_argument("--cycle-policy", choices=CYCLE_POLICIES, default=None,
                        help="'ancestors' stops at groups already on the current branch "
                             "(default); 'none' follows every reference")
    parser.add_argument("--profile", "-p", type=str, default=None,
                        help="Tenant profile name to use (run 'profile list' to see available)")
    parser.add_argument("--config", "-c", type=Path, help="Path to JSON configuration file")
    parser.add_argument("--delegated", action="store_true",
                        help="Use delegated (device-code) authentication")
    parser.add_argument("--cert-path", type=Path, help="Path to base64-encoded certificate file")
    parser.add_argument("--tenant-id", type=str, default=None, help="Tenant ID (overrides profile)")
    parser.add_argument("--client-id", type=str, default=None, help="Client ID (overrides profile)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


class ConfigurationError(Exception):
    """Raised when no usable tenant credentials can be assembled."""
    pass


def build_config(args: argparse.Namespace, profile: Optional[TenantProfile] = None) -> AppConfig:
    """Build run configuration from config file, profile and CLI flags (CLI wins)."""
    if args.config:
        config = AppConfig.from_file(args.config)
    else:
        config = AppConfig()

    inv = config.inventory
    config.inventory = InventoryConfig(
        input_path=str(args.input) if args.input else inv.input_path,
        output_path=str(args.output) if args.output else inv.output_path,
        json_export=args.json or inv.json_export,
        cycle_policy=args.cycle_policy or inv.cycle_policy,
    )
    config.verbose = args.verbose or config.verbose

    mode = config.auth.mode
    if profile:
        mode = profile.auth_mode
    if args.delegated:
        mode = "delegated"

    tenant_id = args.tenant_id or (profile.tenant_id if profile else None)
    client_id = args.client_id or (profile.client_id if profile else None)
    if not (tenant_id and client_id):
        existing = config.auth.certificate or config.auth.secret or config.auth.delegated
        if existing:
            tenant_id = tenant_id or existing.tenant_id
            client_id = client_id or existing.client_id
    if not (tenant_id and client_id):
        raise ConfigurationError(
            "No tenant credentials found. Use --profile, --tenant-id/--client-id, or --config."
        )

    config.auth.mode = mode
    if mode == "certificate":
        if args.cert_path:
            cert_path = str(args.cert_path)
        elif profile:
            cert_path = profile.resolve_cert_path()
        elif config.auth.certificate:
            cert_path = config.auth.certificate.certificate_path
        else:
            cert_path = "./base64.txt"
        password = config.auth.certificate.certificate_password if config.auth.certificate else ""
        config.auth.certificate = CertificateAuth(
            tenant_id=tenant_id,
            client_id=client_id,
            certificate_path=cert_path,
            certificate_password=password,
        )
    elif mode == "secret":
        secret = config.auth.secret.client_secret if config.auth.secret else ""
        config.auth.secret = SecretAuth(tenant_id=tenant_id, client_id=client_id, client_secret=secret)
    elif mode == "delegated":
        config.auth.delegated = DelegatedAuth(tenant_id=tenant_id, client_id=client_id)
    else:
        raise ConfigurationError(f"Unknown auth mode: {mode}")

    return config


def _print_required_permissions() -> None:
    print("\n   The app registration needs these read-only Graph permissions:")
    for permission, purpose in REQUIRED_PERMISSIONS.items():
        print(f"     • {permission:<22} {purpose}")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    # Keep HTTP wire logs out of debug output
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def run(config: AppConfig, seeds: list[str], token: str, run_id: str) -> int:
    """Traverse all seeds and write the report(s)."""
    guardian = SafetyGuardian()

    async with GraphClient(token, guardian, settings=config.graph) as graph:
        expander = HierarchyExpander(
            GraphDirectoryClient(graph),
            cycle_policy=CyclePolicy(config.inventory.cycle_policy),
        )
        print(f"\n  Expanding {len(seeds)} seed groups...\n")
        result = await run_inventory(expander, seeds)
        graph_stats = graph.get_stats()

    csv_path = export_csv(result.rows, config.inventory.output_file)
    print(f"  CSV:   {csv_path}")
    if config.inventory.json_export:
        json_path = export_json(
            result,
            config.inventory.json_file,
            run_id,
            stats={**expander.stats.to_dict(), **graph_stats},
            safety=guardian.get_audit_record(),
        )
        print(f"  JSON:  {json_path}")

    print("\n" + "=" * 70)
    print(" INVENTORY COMPLETE")
    print("=" * 70)
    print(f"  Seeds:           {len(result.seeds)}")
    print(f"  Rows written:    {len(result.rows)}")
    print(f"  Groups skipped:  {expander.stats.groups_skipped}")
    print(f"  Cycles cut:      {expander.stats.cycles_cut}")
    print(f"  Graph requests:  {graph_stats['total_requests']}")
    for seed in result.empty_seeds:
        print(f"  ⚠  No rows for seed {seed}")
    for seed, reason in result.failed_seeds.items():
        print(f"  ⚠  Seed {seed} failed: {reason}")
    print(f"  Duration:        {result.duration_seconds}s\n")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for `python -m entra_group_inventory`."""
    args = parse_args(argv)

    if args.command == "profile":
        return _cmd_profile(args)

    configure_logging(args.verbose)

    print("=" * 70)
    print(f" Entra Group Hierarchy Inventory v{__version__}")
    print(" Mode: READ-ONLY — No directory changes will be made")
    print("=" * 70)

    profile = None
    if args.profile:
        profile = resolve_profile(args.profile)
        if not profile:
            print(f"\n❌ Profile '{args.profile}' not found. Use 'profile list' to see available profiles.")
            return 1
    elif not args.config and not args.tenant_id:
        profile = resolve_profile()

    try:
        config = build_config(args, profile)
    except (ConfigurationError, ValueError, OSError) as e:
        print(f"\n❌ {e}")
        return 1

    try:
        seeds = read_seeds(config.inventory.input_file)
    except FileNotFoundError:
        print(f"\n❌ Seed file not found: {config.inventory.input_file}")
        return 1
    except InputFormatError as e:
        print(f"\n❌ {e}")
        return 1

    run_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:8]
    logger.debug(f"Run {run_id}: cycle policy {config.inventory.cycle_policy}, seeds {seeds}")
    print(f"\n📋 Run ID:  {run_id}")
    print(f"📥 Input:   {config.inventory.input_file} ({len(seeds)} seeds)")
    print(f"📤 Output:  {config.inventory.output_file}")
    if profile:
        print(f"🏢 Tenant:  {profile.tenant_display_name or profile.tenant_id} (profile: {profile.name})")

    print("\n🔐 Authenticating...")
    try:
        token = Authenticator(config.auth).acquire_token()
    except AuthenticationError as e:
        print(f"❌ {e}")
        _print_required_permissions()
        return 1
    print("✅ Authentication successful.")

    return asyncio.run(run(config, seeds, token, run_id))


if __name__ == "__main__":
    sys.exit(main())
