"""
Group classification — maps group type flags to a GroupKind.
"""

from __future__ import annotations

from ..models import GroupKind, GroupTypeFlags


def classify(flags: GroupTypeFlags) -> GroupKind:
    """
    Classify a group from its security/mail/unified flags.

    First match wins; the flag combinations overlap, so the order of the
    checks below is part of the contract.
    """
    if flags.is_unified:
        if flags.mail_enabled:
            return GroupKind.MAIL_ENABLED_M365
        return GroupKind.M365
    if flags.mail_enabled and flags.security_enabled:
        return GroupKind.MAIL_ENABLED_SECURITY
    if flags.security_enabled:
        return GroupKind.SECURITY
    if flags.mail_enabled:
        return GroupKind.DISTRIBUTION_LIST
    return GroupKind.UNKNOWN

