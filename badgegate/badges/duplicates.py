# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Duplicate policy detection for community creation.

A new community may not reuse the exact badge requirements of an active
one; the creator is pointed at the existing community instead. The check
runs before the creator's own badges are evaluated, so a duplicate is
rejected even when the creator holds the badge.
"""

import logging
from typing import Optional, Sequence

from badgegate.badges.canonical import canonicalize_policy
from badgegate.badges.models import BadgePolicy

log = logging.getLogger(__name__)


def check_duplicate(
    new_policy: BadgePolicy,
    existing_policies: Sequence[BadgePolicy],
) -> Optional[int]:
    """Find an existing policy with the same canonical key.

    Args:
        new_policy: Policy of the community being created
        existing_policies: Policies of all active communities

    Returns:
        Index of the first matching policy in *existing_policies*, or
        None if the new policy is unique
    """
    new_key = canonicalize_policy(new_policy)
    for index, existing in enumerate(existing_policies):
        if canonicalize_policy(existing) == new_key:
            log.info(f"Policy {new_key} duplicates existing policy #{index}")
            return index
    return None
