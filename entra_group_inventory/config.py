"""
Configuration module for the Entra Group Hierarchy Inventory.
Defines authentication settings, Graph API tuning, and run options.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Will be prompted if empty
    thumbprint: str = ""           # Optional; checked against the PFX

@dataclass
class SecretAuth:
    """Client-secret app-only authentication configuration."""
    tenant_id: str
    client_id: str
    client_secret: str = ""        # Falls back to ENTRA_CLIENT_SECRET

@dataclass
class DelegatedAuth:
    """Delegated (interactive) authentication configuration."""
    tenant_id: str
    client_id: str
    scopes: list[str] = field(default_factory=lambda: [
        "https://graph.microsoft.com/.default"
    ])

@dataclass
class AuthConfig:
    """Authentication configuration: certificate, secret or delegated."""
    mode: str = "certificate"
    certificate: Optional[CertificateAuth] = None
    secret: Optional[SecretAuth] = None
    delegated: Optional[DelegatedAuth] = None


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"

DEFAULT_PAGE_SIZE = 999           # Maximum items per page ($top)
MAX_PAGES_PER_ENDPOINT = 10000    # Safety cap on pagination loops


@dataclass
class GraphSettings:
    """HTTP behaviour of the Graph client."""
    base_url: str = GRAPH_BASE_URL
    api_version: str = GRAPH_API_VERSION
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = MAX_PAGES_PER_ENDPOINT
    timeout_seconds: float = 60.0
    connect_timeout_seconds: float = 30.0
    max_retries: int = 0               # Throttled requests are not retried by default
    initial_backoff_seconds: float = 2.0
    max_backoff_seconds: float = 120.0
    backoff_multiplier: float = 2.0


# ─── Inventory Run Settings ─────────────────────────────────────────────────

DEFAULT_INPUT_FILE = "GroupGUIDs.csv"
DEFAULT_OUTPUT_FILE = "GroupHierarchy.csv"

CYCLE_POLICIES = ("ancestors", "none")


@dataclass
class InventoryConfig:
    """Input/output locations and traversal policy."""
    input_path: str = DEFAULT_INPUT_FILE
    output_path: str = DEFAULT_OUTPUT_FILE
    json_export: bool = False
    cycle_policy: str = "ancestors"

    def __post_init__(self):
        if self.cycle_policy not in CYCLE_POLICIES:
            raise ValueError(
                f"Unknown cycle policy '{self.cycle_policy}'. "
                f"Expected one of: {', '.join(CYCLE_POLICIES)}"
            )

    @property
    def input_file(self) -> Path:
        return Path(self.input_path)

    @property
    def output_file(self) -> Path:
        return Path(self.output_path)

    @property
    def json_file(self) -> Path:
        return self.output_file.with_suffix(".json")


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class AppConfig:
    """Top-level configuration for a run."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    graph: GraphSettings = field(default_factory=GraphSettings)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "AppConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()
        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "certificate")
            if "certificate" in auth_data:
                c = auth_data["certificate"]
                config.auth.certificate = CertificateAuth(
                    tenant_id=c["tenant_id"],
                    client_id=c["client_id"],
                    certificate_path=c.get("certificate_path", "./base64.txt"),
                    certificate_password=c.get("certificate_password", ""),
                    thumbprint=c.get("thumbprint", ""),
                )
            if "secret" in auth_data:
                s = auth_data["secret"]
                config.auth.secret = SecretAuth(
                    tenant_id=s["tenant_id"],
                    client_id=s["client_id"],
                    client_secret=s.get("client_secret", ""),
                )
            if "delegated" in auth_data:
                d = auth_data["delegated"]
                config.auth.delegated = DelegatedAuth(
                    tenant_id=d["tenant_id"],
                    client_id=d["client_id"],
                )
        if "graph" in data:
            for k, v in data["graph"].items():
                if hasattr(config.graph, k):
                    setattr(config.graph, k, v)
        if "inventory" in data:
            inv = data["inventory"]
            config.inventory = InventoryConfig(
                input_path=inv.get("input_path", DEFAULT_INPUT_FILE),
                output_path=inv.get("output_path", DEFAULT_OUTPUT_FILE),
                json_export=inv.get("json_export", False),
                cycle_policy=inv.get("cycle_policy", "ancestors"),
            )
        config.verbose = data.get("verbose", False)
        return config


# ─── Required Graph API Permissions (Read-Only) ─────────────────────────────

REQUIRED_PERMISSIONS = {
    "Group.Read.All": "Read group properties, group types and owners",
    "GroupMember.Read.All": "Read direct group memberships",
    "User.ReadBasic.All": "Resolve user principal names of members and owners",
}
