"""Provider credential resolution from integration records."""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from replycore.core.interfaces import IIntegrationSource, IntegrationRecord
from replycore.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedCredential:
    """A usable credential plus any model override from the integration."""

    api_key: str
    model: Optional[str] = None
    source: str = "preset"


def parse_integration_config(raw: Optional[str]) -> Dict[str, Any]:
    """Parse an integration's JSON config; malformed config counts as empty."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed integration config")
        return {}
    return parsed if isinstance(parsed, dict) else {}


class InMemoryIntegrationSource:
    """Integration records held in memory.

    The calling application owns the real records; this source is filled from
    the ``integrations`` config section or by the caller.
    """

    def __init__(self, records: Optional[Mapping[str, IntegrationRecord]] = None):
        self._records: Dict[str, IntegrationRecord] = dict(records or {})

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "InMemoryIntegrationSource":
        """Build records from ``{name: {enabled, api_key, config}}``."""
        records = {}
        for name, entry in (config or {}).items():
            entry = entry or {}
            raw_config = entry.get("config")
            if isinstance(raw_config, dict):
                raw_config = json.dumps(raw_config)
            records[name] = IntegrationRecord(
                name=name,
                is_enabled=bool(entry.get("enabled", True)),
                api_key=entry.get("api_key"),
                config=raw_config,
            )
        return cls(records)

    def put(self, record: IntegrationRecord) -> None:
        self._records[record.name] = record

    async def get_integration(self, name: str) -> Optional[IntegrationRecord]:
        return self._records.get(name)


async def resolve_from_integrations(
    source: Optional[IIntegrationSource],
    provider_name: str,
    shared_record: Optional[str] = None,
) -> Optional[ResolvedCredential]:
    """
    Resolve a credential from integration records.

    Looks up the record named after the provider first. When that is absent
    or unusable and ``shared_record`` is given, the shared record is used if
    its config declares ``"provider": provider_name``.

    Args:
        source: Integration source, or None when persistence is not wired
        provider_name: Provider being resolved
        shared_record: Name of a record that may be configured for this provider

    Returns:
        Resolved credential or None
    """
    if source is None:
        return None

    record = await source.get_integration(provider_name)
    if record is not None and record.is_enabled and record.api_key:
        config = parse_integration_config(record.config)
        return ResolvedCredential(
            api_key=record.api_key,
            model=config.get("model"),
            source=f"integration:{provider_name}",
        )

    if shared_record and shared_record != provider_name:
        shared = await source.get_integration(shared_record)
        if shared is not None and shared.is_enabled and shared.api_key:
            config = parse_integration_config(shared.config)
            if config.get("provider") == provider_name:
                return ResolvedCredential(
                    api_key=shared.api_key,
                    model=config.get("model"),
                    source=f"integration:{shared_record}",
                )

    return None
