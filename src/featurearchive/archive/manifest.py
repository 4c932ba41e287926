"""
JAR manifest model and codec.

The manifest is the global header block of a feature archive. Format rules
followed here:

- UTF-8, CRLF line endings;
- ``Manifest-Version`` is always written first in the main section;
- lines longer than 72 bytes continue on the next line after a single space,
  never splitting a multi-byte character;
- attribute names are case-insensitive and limited to
  ``[A-Za-z0-9][A-Za-z0-9_-]{0,69}``;
- named sections follow the main section, each introduced by ``Name:``.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping, MutableMapping

MANIFEST_VERSION = "Manifest-Version"

MAX_LINE_LENGTH = 72

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,69}$")


def _check_name(name: str) -> None:
    if not isinstance(name, str) or not _NAME_RE.match(name):
        raise ValueError(f"Invalid manifest attribute name: {name!r}")


def _check_value(name: str, value: str) -> None:
    if not isinstance(value, str):
        raise TypeError(f"Manifest attribute '{name}' must be a string, got {type(value).__name__}")
    if any(c in value for c in "\r\n\0"):
        raise ValueError(f"Manifest attribute '{name}' must not contain line breaks or NUL")


class Attributes(MutableMapping[str, str]):
    """Insertion-ordered attribute map with case-insensitive names."""

    def __init__(self, source: Mapping[str, str] | None = None) -> None:
        self._items: dict[str, tuple[str, str]] = {}
        if source is not None:
            self.update(source)

    def __getitem__(self, name: str) -> str:
        return self._items[name.lower()][1]

    def __setitem__(self, name: str, value: str) -> None:
        _check_name(name)
        _check_value(name, value)
        key = name.lower()
        if key in self._items:
            # keep the original spelling and position
            self._items[key] = (self._items[key][0], value)
        else:
            self._items[key] = (name, value)

    def __delitem__(self, name: str) -> None:
        del self._items[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._items

    def __repr__(self) -> str:
        return f"Attributes({dict(self.items())!r})"


def _wrap_line(line: bytes) -> bytes:
    out = bytearray()
    limit = MAX_LINE_LENGTH
    while len(line) > limit:
        cut = limit
        # back off to the start of a UTF-8 sequence
        while cut > 0 and (line[cut] & 0xC0) == 0x80:
            cut -= 1
        out += line[:cut] + b"\r\n "
        line = line[cut:]
        limit = MAX_LINE_LENGTH - 1
    out += line + b"\r\n"
    return bytes(out)


def _write_attributes(out: bytearray, attributes: Attributes, first: str | None = None) -> None:
    if first is not None and first in attributes:
        out += _wrap_line(f"{first}: {attributes[first]}".encode("utf-8"))
    for name, value in attributes.items():
        if first is not None and name.lower() == first.lower():
            continue
        out += _wrap_line(f"{name}: {value}".encode("utf-8"))


def _unfold(data: bytes) -> list[str]:
    """Split into logical lines, joining continuation lines."""
    logical: list[bytearray] = []
    for raw in data.splitlines():
        if raw.startswith(b" ") and logical and logical[-1]:
            logical[-1] += raw[1:]
        else:
            logical.append(bytearray(raw))
    return [bytes(line).decode("utf-8") for line in logical]


def _parse_attribute(line: str) -> tuple[str, str]:
    name, sep, value = line.partition(": ")
    if not sep:
        raise ValueError(f"Invalid manifest line: {line!r}")
    return name, value


class Manifest:
    """Main attributes plus named entry sections.

    ``Manifest(other)`` copies ``other`` (a Manifest or a plain mapping of
    main attributes); the copy never shares state with the source.
    """

    def __init__(self, source: Manifest | Mapping[str, str] | None = None) -> None:
        self.main_attributes = Attributes()
        self.entries: dict[str, Attributes] = {}
        if isinstance(source, Manifest):
            self.main_attributes.update(source.main_attributes)
            for name, attributes in source.entries.items():
                self.entries[name] = Attributes(attributes)
        elif source is not None:
            self.main_attributes.update(source)

    def get_value(self, name: str, default: str | None = None) -> str | None:
        return self.main_attributes.get(name, default)

    def to_bytes(self) -> bytes:
        out = bytearray()
        _write_attributes(out, self.main_attributes, first=MANIFEST_VERSION)
        out += b"\r\n"
        for name, attributes in self.entries.items():
            out += _wrap_line(f"Name: {name}".encode("utf-8"))
            _write_attributes(out, attributes)
            out += b"\r\n"
        return bytes(out)

    @classmethod
    def from_bytes(cls, data: bytes) -> Manifest:
        manifest = cls()
        current: Attributes | None = manifest.main_attributes
        for line in _unfold(data):
            if not line:
                current = None
                continue
            name, value = _parse_attribute(line)
            if current is None:
                if name.lower() != "name":
                    raise ValueError(f"Manifest section must start with 'Name:', got {line!r}")
                current = manifest.entries.setdefault(value, Attributes())
                continue
            current[name] = value
        return manifest

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Manifest):
            return NotImplemented
        return dict(self.main_attributes.items()) == dict(other.main_attributes.items()) and {
            k: dict(v.items()) for k, v in self.entries.items()
        } == {k: dict(v.items()) for k, v in other.entries.items()}

    def __repr__(self) -> str:
        return f"Manifest(main={dict(self.main_attributes.items())!r}, entries={list(self.entries)!r})"
