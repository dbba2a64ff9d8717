from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple


@dataclass(frozen=True)
class RoutingEntry:
    """Одно правило маршрутизации: host + path -> service_address:service_port."""

    host: str
    name: str
    path: str
    service_address: str
    service_port: int
    allow: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # A missing allow-list behaves like an empty one.
        object.__setattr__(self, "allow", tuple(self.allow or ()))
        object.__setattr__(self, "service_port", int(self.service_port))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutingEntry":
        return cls(
            host=data.get("host", ""),
            name=data.get("name", ""),
            path=data.get("path", ""),
            service_address=data["service_address"],
            service_port=data["service_port"],
            allow=tuple(data.get("allow") or ()),
        )


@dataclass(frozen=True)
class RenderedEntry:
    """Запись, подготовленная для шаблона nginx."""

    entry: RoutingEntry
    upstream_id: str
    path: str

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def host(self) -> str:
        return self.entry.host

    @property
    def service_address(self) -> str:
        return self.entry.service_address

    @property
    def service_port(self) -> int:
        return self.entry.service_port

    @property
    def allow(self) -> Tuple[str, ...]:
        return self.entry.allow


def sort_entries(entries: Iterable[RoutingEntry]) -> List[RoutingEntry]:
    """Canonical order: ascending by name, stable for equal names."""
    return sorted(entries, key=lambda e: e.name)


def normalize_path(path: str) -> str:
    """Приводит путь к виду /prefix/, пустой путь становится /."""
    trimmed = (path or "").strip("/")
    if not trimmed:
        return "/"
    return f"/{trimmed}/"


def upstream_id(index: int) -> str:
    return f"upstream{index:03d}"


def prepare_entries(entries: Iterable[RoutingEntry]) -> List[RenderedEntry]:
    """Сортирует записи и назначает им идентификаторы upstream по позиции."""
    return [
        RenderedEntry(entry=entry, upstream_id=upstream_id(idx), path=normalize_path(entry.path))
        for idx, entry in enumerate(sort_entries(entries))
    ]
