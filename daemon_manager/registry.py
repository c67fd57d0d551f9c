from typing import Iterable

from .errors import ConfigError, NotFound
from .models import ServiceEntry


class ServiceRegistry:
    """
    Read-only mapping of logical ids to configured services.

    Built once at startup; insertion order is the configuration order.

    :param entries: Already-parsed service entries.
    """

    def __init__(self, entries: Iterable[ServiceEntry]):
        self._entries: dict[str, ServiceEntry] = {}
        for entry in entries:
            if entry.logical_id in self._entries:
                raise ConfigError(f"duplicate service id: {entry.logical_id}")
            self._entries[entry.logical_id] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, logical_id: str) -> ServiceEntry:
        """
        Return the entry for a logical id.

        :param logical_id: Configured key.

        :returns: ServiceEntry.
        """
        try:
            return self._entries[logical_id]
        except KeyError:
            raise NotFound(f"unknown service: {logical_id}") from None

    def find_by_unit(self, unit_name: str) -> ServiceEntry | None:
        """
        Return the first entry configured for a unit name.

        :param unit_name: systemd unit name.

        :returns: ServiceEntry or None.
        """
        for entry in self._entries.values():
            if entry.unit_name == unit_name:
                return entry
        return None

    def list_all(self) -> list[ServiceEntry]:
        return list(self._entries.values())
