"""
Device Resolution
=================

Best-effort binding of device references in free text to real devices.

Users say "the router at 10.0.0.1" or "back up PEYU-GD0887", while tools
need device IDs. Before the first model call the resolver:

1. Extracts candidates: IPv4 addresses, names (quoted or hyphenated), and
   vendor/device-class keywords
2. Skips everything else when there are no candidates (the common case)
3. Fetches the device list once and unwraps whatever shape it came in
4. Matches candidates against each device (permissive substring rules)
5. Renders a short "Device Matches Found" block for the user turn

The result only enriches the prompt. The model still has to put concrete
IDs in its tool arguments, and any failure here yields an empty result.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable

from rpchat.errors import ResolutionError
from rpchat.tools.provider import ToolProviderClient
from rpchat.utils.logger import Logger

logger = Logger("Resolver")

# Device record fields as returned by the Restorepoint API
FIELD_ID = "ID"
FIELD_NAME = "Name"
FIELD_ADDRESS = "Address"
FIELD_TYPE = "PluginName"
FIELD_ASSETS = "AssetFields"

IP_PATTERN = re.compile(r"\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b")
QUOTED_PATTERN = re.compile(r'"([^"]+)"')
NAME_PATTERNS = (
    re.compile(r"\b[A-Z]+-\d+[A-Z]*\b"),          # SI-1238VA, PEYU-GD0887
    re.compile(r"\b[a-zA-Z]+-[a-zA-Z0-9-]+\b"),   # Enablis-Test-Palo
)

DEVICE_KEYWORDS = (
    "cisco", "palo alto", "juniper", "aruba", "fortinet",
    "router", "switch", "firewall", "controller",
    "ios", "junos", "catos", "palo",
)


@dataclass(frozen=True)
class ResolvedEntity:
    """A device matched from free text."""
    id: str
    display_name: str
    address: str
    type_tag: str


@dataclass
class Resolution:
    """Matched devices and the prompt block describing them."""
    entities: list[ResolvedEntity] = field(default_factory=list)
    context_block: str = ""

    @property
    def ids(self) -> list[str]:
        return [entity.id for entity in self.entities]


# ==============================================================================
# Extraction
# ==============================================================================

def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def extract_addresses(text: str) -> list[str]:
    """IPv4-shaped tokens, in order of appearance."""
    return _unique(IP_PATTERN.findall(text))


def extract_names(text: str) -> list[str]:
    """Quoted strings plus hyphenated device-name patterns."""
    names = QUOTED_PATTERN.findall(text)
    for pattern in NAME_PATTERNS:
        names.extend(pattern.findall(text))
    return _unique(names)


def extract_keywords(text: str) -> list[str]:
    """Known vendor and device-class terms found in the text."""
    lowered = text.lower()
    return [keyword for keyword in DEVICE_KEYWORDS if keyword in lowered]


# ==============================================================================
# Response Unwrapping
# ==============================================================================
# The device listing has come back in several shapes over server versions.
# Each probe returns the device list or None; the first hit wins.

def _probe_nested_data(payload: Any) -> list | None:
    if isinstance(payload, dict):
        inner = payload.get("data")
        if isinstance(inner, dict) and isinstance(inner.get("data"), list):
            return inner["data"]
    return None


def _probe_list(payload: Any) -> list | None:
    return payload if isinstance(payload, list) else None


def _probe_data(payload: Any) -> list | None:
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    return None


def _probe_result(payload: Any) -> list | None:
    if isinstance(payload, dict) and isinstance(payload.get("result"), list):
        return payload["result"]
    return None


SHAPE_PROBES: tuple[Callable[[Any], list | None], ...] = (
    _probe_nested_data,
    _probe_list,
    _probe_data,
    _probe_result,
)


def unwrap_devices(payload: Any) -> list[dict]:
    """
    Extract the device list from a listing payload.

    Returns:
        Device records (non-dict entries dropped), or [] for unknown shapes
    """
    for probe in SHAPE_PROBES:
        devices = probe(payload)
        if devices is not None:
            return [device for device in devices if isinstance(device, dict)]

    logger.warning("Unexpected device listing shape", {"type": type(payload).__name__})
    return []


# ==============================================================================
# Matching
# ==============================================================================

def _text(device: dict, key: str) -> str:
    value = device.get(key)
    return "" if value is None else str(value)


def _matches_address(device: dict, address: str) -> bool:
    device_address = _text(device, FIELD_ADDRESS)
    return device_address == address or address in device_address or device_address in address


def _matches_name(device: dict, name: str) -> bool:
    device_name = _text(device, FIELD_NAME).lower()
    wanted = name.lower()
    return wanted in device_name or device_name in wanted


def _matches_keyword(device: dict, keyword: str) -> bool:
    wanted = keyword.lower()
    if wanted in _text(device, FIELD_TYPE).lower():
        return True

    assets = device.get(FIELD_ASSETS) or []
    if not isinstance(assets, list):
        return False
    return any(
        isinstance(asset, dict) and wanted in _text(asset, "Value").lower()
        for asset in assets
    )


def match_devices(
    devices: list[dict],
    addresses: list[str],
    names: list[str],
    keywords: list[str]
) -> list[dict]:
    """
    Match candidates against devices, de-duplicated by ID (first match wins).

    Order: all address matches, then name matches, then keyword matches.
    """
    matched: list[dict] = []
    for address in addresses:
        matched.extend(device for device in devices if _matches_address(device, address))
    for name in names:
        matched.extend(device for device in devices if _matches_name(device, name))
    for keyword in keywords:
        matched.extend(device for device in devices if _matches_keyword(device, keyword))

    unique: list[dict] = []
    seen: set[str] = set()
    for device in matched:
        device_id = _text(device, FIELD_ID)
        if device_id in seen:
            continue
        seen.add(device_id)
        unique.append(device)
    return unique


def to_entity(device: dict) -> ResolvedEntity:
    return ResolvedEntity(
        id=_text(device, FIELD_ID),
        display_name=_text(device, FIELD_NAME),
        address=_text(device, FIELD_ADDRESS),
        type_tag=_text(device, FIELD_TYPE),
    )


def render_context(entities: list[ResolvedEntity]) -> str:
    """Render the device-match block appended to the user's message."""
    if not entities:
        return ""

    lines = ["", "", "## Device Matches Found:"]
    for entity in entities:
        lines.append(
            f"- {entity.display_name} (ID: {entity.id}, IP: {entity.address}, Type: {entity.type_tag})"
        )
    lines.append("")
    lines.append(f"Use these device IDs for any operations: {', '.join(e.id for e in entities)}")
    return "\n".join(lines) + "\n"


class EntityResolver:
    """
    Resolves device references in user text.

    Example:
        resolver = EntityResolver(provider)
        resolution = await resolver.resolve("check status of 172.31.13.115")

        resolution.ids            # ["42"]
        resolution.context_block  # "\\n\\n## Device Matches Found:\\n- Core-1 ..."
    """

    def __init__(self, provider: ToolProviderClient):
        self.provider = provider

    async def resolve(self, text: str) -> Resolution:
        """
        Resolve device references in text. Never raises.

        Args:
            text: The user's message

        Returns:
            Resolution, empty when nothing matched or anything failed
        """
        addresses = extract_addresses(text)
        names = extract_names(text)
        keywords = extract_keywords(text)

        if not (addresses or names or keywords):
            return Resolution()

        logger.debug("Extracted device identifiers", {
            "addresses": ",".join(addresses),
            "names": ",".join(names),
            "keywords": ",".join(keywords),
        })

        try:
            devices = await self._fetch_devices()
            matched = match_devices(devices, addresses, names, keywords)
        except Exception as e:
            logger.error("Error resolving device identifiers", e)
            return Resolution()

        entities = [to_entity(device) for device in matched]
        if entities:
            logger.info("Device resolution completed", {
                "matched": len(entities),
                "ids": ",".join(entity.id for entity in entities),
            })
        return Resolution(entities=entities, context_block=render_context(entities))

    async def _fetch_devices(self) -> list[dict]:
        result = await self.provider.list_entities()
        if not result.success:
            message = result.error.message if result.error else "no data returned"
            raise ResolutionError(f"Device listing failed: {message}")
        return unwrap_devices(result.data)
