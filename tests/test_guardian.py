"""Tests for read-only enforcement."""

import pytest

from entra_group_inventory.safety.guardian import SafetyGuardian, SafetyViolation

BASE = "https://graph.microsoft.com/v1.0"


class TestSafetyGuardian:

    @pytest.mark.parametrize("url", [
        f"{BASE}/groups/abc",
        f"{BASE}/groups/abc/members",
        f"{BASE}/groups/abc/owners?$skiptoken=xyz",
        f"{BASE}/groups/abc/members/microsoft.graph.user",
    ])
    def test_group_reads_allowed(self, url):
        assert SafetyGuardian().validate_request("GET", url) is True

    @pytest.mark.parametrize("method", ["POST", "PATCH", "PUT", "DELETE"])
    def test_write_methods_blocked(self, method):
        guardian = SafetyGuardian()
        with pytest.raises(SafetyViolation):
            guardian.validate_request(method, f"{BASE}/groups/abc/members")
        assert guardian.get_audit_record()["status"] == "VIOLATIONS_DETECTED"

    def test_ref_navigation_blocked(self):
        with pytest.raises(SafetyViolation):
            SafetyGuardian().validate_request("GET", f"{BASE}/groups/abc/members/$ref")

    def test_other_endpoints_blocked(self):
        guardian = SafetyGuardian()
        with pytest.raises(SafetyViolation):
            guardian.validate_request("GET", f"{BASE}/users")
        record = guardian.get_audit_record()
        assert record["checks_performed"] == 1
        assert record["violations"][0]["reason"] == "Endpoint outside group inventory scope"

    def test_clean_audit_record(self):
        guardian = SafetyGuardian()
        guardian.validate_request("GET", f"{BASE}/groups/abc")
        assert guardian.get_audit_record()["status"] == "CLEAN"
