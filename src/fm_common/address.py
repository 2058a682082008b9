"""Account address helpers. Addresses are opaque strings, compared case-insensitively."""

NULL_ADDRESS = "0x" + "0" * 40


def is_null_address(address: str | None) -> bool:
    if address is None:
        return True
    stripped = address.strip().lower()
    return stripped in ("", "0x") or stripped == NULL_ADDRESS


def normalize_address(address: str) -> str:
    return address.strip().lower()
