"""
Authentication module — certificate, client-secret and delegated auth.
Uses MSAL for token acquisition against Microsoft Identity Platform.
"""

from __future__ import annotations

import base64
import getpass
import logging
import os

from cryptography.hazmat.primitives.serialization import pkcs12, Encoding, PrivateFormat, NoEncryption
from cryptography.hazmat.primitives.hashes import SHA1
import msal

from ..config import AuthConfig, CertificateAuth

logger = logging.getLogger("entra_group_inventory.auth")

APP_SCOPES = ["https://graph.microsoft.com/.default"]
AUTHORITY_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}"

CERT_PASSWORD_ENV = "ENTRA_CERT_PASSWORD"
CLIENT_SECRET_ENV = "ENTRA_CLIENT_SECRET"


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


class Authenticator:
    """
    Handles MSAL-based authentication for Microsoft Graph.
    Supports:
      - Certificate-based app-only authentication
      - Client-secret app-only authentication
      - Delegated interactive authentication (device code flow)
    """

    def __init__(self, config: AuthConfig):
        self.config = config

    def acquire_token(self) -> str:
        """Acquire an access token based on configured auth mode."""
        if self.config.mode == "certificate":
            return self._acquire_certificate_token()
        elif self.config.mode == "secret":
            return self._acquire_secret_token()
        elif self.config.mode == "delegated":
            return self._acquire_delegated_token()
        else:
            raise AuthenticationError(f"Unknown auth mode: {self.config.mode}")

    def _acquire_certificate_token(self) -> str:
        cert_config = self.config.certificate
        if not cert_config:
            raise AuthenticationError("Certificate auth config not provided.")

        logger.info("Authenticating with certificate-based app credentials...")
        private_key_pem, thumbprint = load_certificate(cert_config)

        app = msal.ConfidentialClientApplication(
            client_id=cert_config.client_id,
            authority=AUTHORITY_TEMPLATE.format(tenant_id=cert_config.tenant_id),
            client_credential={
                "thumbprint": thumbprint,
                "private_key": private_key_pem,
            },
        )
        return self._token_from_result(
            app.acquire_token_for_client(scopes=APP_SCOPES), "Certificate"
        )

    def _acquire_secret_token(self) -> str:
        secret_config = self.config.secret
        if not secret_config:
            raise AuthenticationError("Client secret auth config not provided.")

        secret = secret_config.client_secret or os.environ.get(CLIENT_SECRET_ENV, "")
        if not secret:
            secret = getpass.getpass("Enter the client secret: ")
        if not secret:
            raise AuthenticationError(
                f"No client secret supplied (set {CLIENT_SECRET_ENV} or enter it when prompted)."
            )

        logger.info("Authenticating with client-secret app credentials...")
        app = msal.ConfidentialClientApplication(
            client_id=secret_config.client_id,
            authority=AUTHORITY_TEMPLATE.format(tenant_id=secret_config.tenant_id),
            client_credential=secret,
        )
        return self._token_from_result(
            app.acquire_token_for_client(scopes=APP_SCOPES), "Client secret"
        )

    def _acquire_delegated_token(self) -> str:
        deleg_config = self.config.delegated
        if not deleg_config:
            raise AuthenticationError("Delegated auth config not provided.")

        logger.info("Initiating device code authentication flow...")
        app = msal.PublicClientApplication(
            client_id=deleg_config.client_id,
            authority=AUTHORITY_TEMPLATE.format(tenant_id=deleg_config.tenant_id),
        )

        flow = app.initiate_device_flow(scopes=deleg_config.scopes)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Device code flow failed: {flow.get('error_description', 'Unknown')}"
            )

        print(f"\n{'='*60}")
        print(f"  To sign in, open: {flow['verification_uri']}")
        print(f"  Enter code: {flow['user_code']}")
        print(f"{'='*60}\n")

        return self._token_from_result(
            app.acquire_token_by_device_flow(flow), "Delegated"
        )

    def _token_from_result(self, result: dict, label: str) -> str:
        if "access_token" in result:
            logger.info(f"{label} authentication successful.")
            return result["access_token"]
        error = result.get("error_description", result.get("error", "Unknown"))
        raise AuthenticationError(f"{label} auth failed: {error}")


def load_certificate(cert_config: CertificateAuth) -> tuple[str, str]:
    """
    Load a base64-encoded PFX and return (private key PEM, SHA1 thumbprint).
    The password comes from the config, ENTRA_CERT_PASSWORD, or a prompt.
    A configured thumbprint must match the certificate in the bundle.
    """
    cert_path = cert_config.certificate_path
    password = cert_config.certificate_password or os.environ.get(CERT_PASSWORD_ENV, "")
    if not password:
        password = getpass.getpass("Enter the certificate password: ")

    try:
        with open(cert_path, "r") as f:
            cert_bytes = base64.b64decode(f.read().strip())
    except FileNotFoundError:
        raise AuthenticationError(f"Certificate file not found: {cert_path}")

    try:
        private_key, certificate, _ = pkcs12.load_key_and_certificates(
            cert_bytes, password.encode("utf-8") if password else None
        )
    except ValueError as e:
        raise AuthenticationError(f"Failed to load certificate: {e}")

    if private_key is None or certificate is None:
        raise AuthenticationError(f"Certificate bundle {cert_path} has no key or certificate")

    private_key_pem = private_key.private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
    ).decode("utf-8")
    thumbprint = certificate.fingerprint(SHA1()).hex()
    expected = cert_config.thumbprint.replace(":", "").replace(" ", "").lower()
    if expected and expected != thumbprint:
        raise AuthenticationError(
            f"Certificate thumbprint {thumbprint} does not match configured {cert_config.thumbprint}"
        )
    logger.info(f"Certificate loaded. Thumbprint: {thumbprint}")
    return private_key_pem, thumbprint
