"""Static values shared across the client."""

DEFAULT_BRIDGE_URL = "wss://bridge.zkpassport.id"
DEFAULT_REQUEST_URL = "https://zkpassport.id/r"

TOPIC_BYTES = 16

# ISO 3166-1 alpha-3 codes, suitable for ``out("nationality", SANCTIONED_COUNTRIES)``.
SANCTIONED_COUNTRIES = (
    "PRK",
    "IRN",
    "IRQ",
    "LBY",
    "SOM",
    "SDN",
    "SYR",
    "YEM",
)
