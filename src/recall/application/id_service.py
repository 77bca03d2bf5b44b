"""Service for generating stable record ids."""

from ulid import ULID


def generate_card_id() -> str:
    """Generate a stable card id using ULID."""
    return f"card_{ULID()}"


def generate_pack_id() -> str:
    return f"pack_{ULID()}"


def generate_review_id() -> str:
    return f"rev_{ULID()}"
