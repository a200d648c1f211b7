"""Address normalization and the sentinel owner."""

# Owner value the registry returns for an id that was never registered
ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: str) -> str:
    """Return the canonical lowercase form used for comparison and set membership."""
    return address.strip().lower()


def is_sentinel_owner(owner: str | None) -> bool:
    """Whether an owner value marks a nonexistent asset."""
    if not owner:
        return True
    return normalize_address(owner) == ZERO_ADDRESS


def short_address(address: str) -> str:
    """Abbreviate an address for display, e.g. ``0x1234...abcd``."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"
