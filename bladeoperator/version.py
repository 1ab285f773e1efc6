"""Version and product of the operator build."""

from __future__ import annotations

DEFAULT_VERSION = "unknown"
DEFAULT_PRODUCT = "community"
DELIMITER = ","

# Set at build time as "<version><delimiter><product>".
COMBINED_VERSION = ""


def parse_combined_version(combined: str, delimiter: str = DELIMITER) -> tuple[str, str]:
    """Split a combined "version,product" string into its version and product.

    Missing parts fall back to the defaults; an empty string yields both defaults.
    """
    version, product = DEFAULT_VERSION, DEFAULT_PRODUCT
    if not combined:
        return version, product
    fields = combined.split(delimiter)
    if fields:
        version = fields[0]
    if len(fields) > 1:
        product = fields[1]
    return version, product


VERSION, PRODUCT = parse_combined_version(COMBINED_VERSION, DELIMITER)