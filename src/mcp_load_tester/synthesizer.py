# synthesizer.py
# Schema-driven random argument generation backed by Faker.
#
# Field-name heuristics run in the order of _HEURISTICS and the first
# substring hit wins, so "countryCode" yields a country name and "username"
# yields a person's name. Callers rely on this order; do not reshuffle it.

from datetime import timezone
from typing import Any, Callable

from faker import Faker

from mcp_load_tester.models import MockDataConfig


def _email(fake: Faker, fmt: str | None) -> str:
    if fmt == "company":
        return fake.company_email()
    if fmt == "free":
        return fake.free_email()
    if fmt == "safe":
        return fake.safe_email()
    return fake.email()


def _name(fake: Faker, fmt: str | None) -> str:
    if fmt in ("first", "firstName"):
        return fake.first_name()
    if fmt in ("last", "lastName"):
        return fake.last_name()
    return fake.name()


_HEURISTICS: list[tuple[str, Callable[[Faker, str | None], Any]]] = [
    ("email",   _email),
    ("url",     lambda fake, fmt: fake.url()),
    ("name",    _name),
    ("phone",   lambda fake, fmt: fake.phone_number()),
    ("address", lambda fake, fmt: fake.street_address()),
    ("city",    lambda fake, fmt: fake.city()),
    ("country", lambda fake, fmt: fake.country()),
    ("date",    lambda fake, fmt: fake.date_time_this_month(tzinfo=timezone.utc).isoformat()),
]

_BY_TYPE: dict[str, Callable[[Faker], Any]] = {
    "string":  lambda fake: fake.word(),
    "number":  lambda fake: fake.random_int(min=0, max=1000),
    "integer": lambda fake: fake.random_int(min=0, max=1000),
    "boolean": lambda fake: fake.pybool(),
    "array":   lambda fake: [],
}


def required_fields(schema: dict[str, Any] | None) -> list[str]:
    """
    Names of required top-level properties.

    Honors both the JSON-Schema `required` list and a per-property
    `required: true` flag.
    """
    if not schema:
        return []
    properties = schema.get("properties") or {}
    names = [name for name in schema.get("required") or [] if name in properties]
    for name, prop in properties.items():
        if isinstance(prop, dict) and prop.get("required") is True and name not in names:
            names.append(name)
    return names


class ParameterSynthesizer:
    """Produces schema-conformant argument objects with plausible values."""

    def __init__(self, fake: Faker | None = None, mock_config: MockDataConfig | None = None) -> None:
        self._mock_config = mock_config or MockDataConfig()
        self._fake = fake or Faker(self._mock_config.locale)
        if self._mock_config.seed is not None:
            self._fake.seed_instance(self._mock_config.seed)

    def generate_value(
        self,
        field_name: str,
        prop: dict[str, Any],
        mock_config: MockDataConfig | None = None,
    ) -> Any:
        config = mock_config or self._mock_config

        if config.faker_enabled:
            custom = config.field_generators.get(field_name)
            if custom is not None:
                return custom(self._fake)

            fmt = config.field_formats.get(field_name)
            lowered = field_name.lower()
            for needle, generator in _HEURISTICS:
                if needle in lowered:
                    return generator(self._fake, fmt or config.field_formats.get(needle))

        prop_type = prop.get("type") if isinstance(prop, dict) else None
        if isinstance(prop_type, list):
            # ["string", "null"] style unions: take the first concrete type.
            prop_type = next((t for t in prop_type if t != "null"), None)
        if prop_type == "object":
            return self.generate(prop, config)
        generator = _BY_TYPE.get(prop_type)
        return generator(self._fake) if generator else None

    def generate(
        self,
        schema: dict[str, Any] | None,
        mock_config: MockDataConfig | None = None,
    ) -> dict[str, Any]:
        """Fill every property of an object schema. Unknown shapes yield {}."""
        params: dict[str, Any] = {}
        if not schema or not schema.get("properties"):
            return params
        for key, prop in schema["properties"].items():
            params[key] = self.generate_value(key, prop, mock_config)
        return params
