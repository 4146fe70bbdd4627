"""Thing properties as returned by the Arduino IoT Cloud API.

A property is addressed by its numeric id, but callers know it by a key. The
key is resolved against the variable name first (the identifier used in the
sketch) and against the display name second.
"""
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel


class Property(BaseModel):
    """One property of a Thing."""
    id: str
    name: Optional[str] = None
    variable_name: Optional[str] = None
    value: Any = None

    @classmethod
    def from_api(cls, payload: dict) -> "Property":
        # last_value wins even when it is null
        if "last_value" in payload:
            value = payload["last_value"]
        else:
            value = payload.get("value")
        return cls(
            id=str(payload.get("id", "")),
            name=payload.get("name"),
            variable_name=payload.get("variable_name"),
            value=value,
        )

    @property
    def key(self) -> Optional[str]:
        return self.variable_name or self.name


class PropertyIndex:
    """Lookup of properties by preferred key (variable name) and fallback key (name)."""

    def __init__(self, properties: Iterable[Property]):
        self.by_variable: Dict[str, Property] = {}
        self.by_name: Dict[str, Property] = {}
        for prop in properties:
            if prop.variable_name:
                self.by_variable[prop.variable_name] = prop
            if prop.name:
                self.by_name[prop.name] = prop

    def resolve(self, key: str) -> Optional[Property]:
        return self.by_variable.get(key) or self.by_name.get(key)

    def __contains__(self, key: str) -> bool:
        return self.resolve(key) is not None


def properties_to_state(properties: List[Property]) -> Dict[str, Any]:
    """Flatten a property list into {variable_name or name: value}."""
    state = {}
    for prop in properties:
        if prop.key:
            state[prop.key] = prop.value
    return state
