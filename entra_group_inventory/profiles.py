"""
Tenant profiles — named tenant/app registrations for repeat runs.

Profiles are stored in:
    ~/.entra_group_inventory/profiles.json

A profile names the tenant, the app registration and how to authenticate
(certificate, client secret, or delegated). Secrets are never stored; they
come from the environment or a prompt at run time.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger("entra_group_inventory.profiles")

DEFAULT_PROFILES_FILE = Path.home() / ".entra_group_inventory" / "profiles.json"

AUTH_MODES = ("certificate", "secret", "delegated")


@dataclass
class TenantProfile:
    """A single named tenant profile."""
    name: str
    tenant_id: str
    client_id: str
    auth_mode: str = "certificate"
    cert_path: str = "./base64.txt"    # Only used in certificate mode
    tenant_display_name: str = ""

    def resolve_cert_path(self) -> str:
        """Return absolute cert path, resolving ~ and relative paths."""
        p = Path(self.cert_path).expanduser()
        if not p.is_absolute():
            p = Path.cwd() / p
        return str(p)

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "auth_mode": self.auth_mode,
            "cert_path": self.cert_path,
            "tenant_display_name": self.tenant_display_name,
        }


@dataclass
class ProfileStore:
    """The set of tenant profiles persisted in one JSON file."""
    path: Path = DEFAULT_PROFILES_FILE
    profiles: dict[str, TenantProfile] = field(default_factory=dict)
    default_profile: str = ""

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "ProfileStore":
        """Load profiles from disk. Returns an empty store if the file is absent."""
        store = cls(path=path or DEFAULT_PROFILES_FILE)
        if not store.path.exists():
            return store
        try:
            data = json.loads(store.path.read_text(encoding="utf-8"))
            store.default_profile = data.get("default_profile", "")
            for name, pdata in data.get("profiles", {}).items():
                store.profiles[name] = TenantProfile(
                    name=name,
                    tenant_id=pdata["tenant_id"],
                    client_id=pdata["client_id"],
                    auth_mode=pdata.get("auth_mode", "certificate"),
                    cert_path=pdata.get("cert_path", "./base64.txt"),
                    tenant_display_name=pdata.get("tenant_display_name", ""),
                )
        except (json.JSONDecodeError, KeyError) as e:
            logger.warning(f"Failed to parse {store.path}: {e}")
            return cls(path=store.path)
        return store

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "default_profile": self.default_profile,
            "profiles": {name: p.to_dict() for name, p in self.profiles.items()},
        }
        self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    def add(self, profile: TenantProfile, set_default: bool = False) -> None:
        """Add or overwrite a profile."""
        if profile.auth_mode not in AUTH_MODES:
            raise ValueError(f"Unknown auth mode: {profile.auth_mode}")
        self.profiles[profile.name] = profile
        if set_default or not self.default_profile:
            self.default_profile = profile.name
        self.save()

    def remove(self, name: str) -> bool:
        """Remove a profile by name. Returns True if it existed."""
        if name not in self.profiles:
            return False
        del self.profiles[name]
        if self.default_profile == name:
            self.default_profile = next(iter(self.profiles), "")
        self.save()
        return True

    def get(self, name: str) -> Optional[TenantProfile]:
        """Get a profile by name (case-insensitive)."""
        key = name.lower()
        for pname, profile in self.profiles.items():
            if pname.lower() == key:
                return profile
        return None

    def get_default(self) -> Optional[TenantProfile]:
        if self.default_profile:
            return self.profiles.get(self.default_profile)
        return next(iter(self.profiles.values()), None)

    def set_default(self, name: str) -> bool:
        if name not in self.profiles:
            return False
        self.default_profile = name
        self.save()
        return True

    def list_profiles(self) -> list[TenantProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.name)


def resolve_profile(
    profile_name: Optional[str] = None,
    path: Optional[Path] = None,
) -> Optional[TenantProfile]:
    """
    Look up a tenant profile by name, or the default profile if no name given.
    Returns None if nothing matches.
    """
    store = ProfileStore.load(path)
    if profile_name:
        return store.get(profile_name)
    return store.get_default()
