from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from recontrack.utils.identifiers import normalize_identifier_value


class StoreDirectory:
    """Closed enumeration of dealership stores keyed by their DMS company code.

    Inventory exports carry the store as a small integer code ("1", sometimes
    "1.0"); people filter by either the code or the short name. Both resolve to
    the code, anything else resolves to None.
    """

    def __init__(self, stores: Mapping[str, str]):
        self._by_code: Dict[str, str] = {str(k).strip(): str(v).strip() for k, v in stores.items()}
        self._by_name: Dict[str, str] = {v.casefold(): k for k, v in self._by_code.items()}

    @property
    def codes(self) -> list[str]:
        return list(self._by_code)

    def resolve(self, value: Any) -> Optional[str]:
        text = normalize_identifier_value(value)
        if text is None:
            return None
        if text in self._by_code:
            return text
        return self._by_name.get(text.casefold())

    def name_for(self, code: Optional[str]) -> Optional[str]:
        if code is None:
            return None
        return self._by_code.get(str(code))

    def describe(self) -> list[str]:
        return [f"{code}={name}" for code, name in self._by_code.items()]
