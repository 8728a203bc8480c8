"""
Utility functions for building stable test identifiers.

The identifier is the grouping key for every per-test analysis (flakiness,
impact, timeline). It must stay identical across runs of the same logical
test and must never collide between organizations.
"""
import hashlib
from typing import Optional


def generate_test_identifier(suite: Optional[str], name: str, organization_id: str) -> str:
    """
    Build the stable identifier of a logical test.

    The organization ID is part of the hashed value so that identically named
    tests in different organizations never share an identifier. An empty or
    missing suite contributes nothing to the hash.

    Args:
        suite: Test suite name (may be None)
        name: Test name
        organization_id: Owning organization

    Returns:
        32-character md5 hex digest
    """
    suite_prefix = f"{suite}:" if suite else ""
    return hashlib.md5(f"{organization_id}:{suite_prefix}{name}".encode()).hexdigest()
