"""Pattern tables for claim field extraction.

Each claim field owns an ordered list of regular expressions; the first
listed pattern has the highest priority. Patterns hold at most one
capture group. Without a group the whole match becomes the value.

The tables are built once into an immutable ``ExtractionRules`` and
handed to the field extractor. A YAML file can replace the patterns of
individual fields.
"""

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

import yaml

from claim_ocr.models import CLAIM_FIELDS
from claim_ocr.utils.logger import get_logger

logger = get_logger(__name__)

_FLAGS = re.IGNORECASE
_DATE = r"[0-9]{1,2}[/\-][0-9]{1,2}[/\-][0-9]{2,4}"
# Whitespace that never crosses a line break.
_HSPACE = r"[^\S\n]"
_GAP = rf"(?::|{_HSPACE})+"
_REST_OF_LINE = _GAP + r"([^\n]+)"

DEFAULT_PATTERNS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "provider_name": (
            r"provider" + _REST_OF_LINE,
            r"clinic" + _REST_OF_LINE,
            r"hospital" + _REST_OF_LINE,
            r"doctor" + _REST_OF_LINE,
        ),
        "country": (
            r"country" + _REST_OF_LINE,
            r"state" + _REST_OF_LINE,
        ),
        "city": (
            r"city" + _REST_OF_LINE,
            r"location" + _REST_OF_LINE,
        ),
        "service_date": (
            rf"date{_GAP}({_DATE})",
            rf"service date{_GAP}({_DATE})",
            rf"({_DATE})",
        ),
        "currency": (
            rf"currency{_GAP}([a-z]{{3}})",
            rf"([a-z]{{3}}){_HSPACE}*[0-9]+",
            r"\$|usd|eur|gbp",
        ),
        "amount": (
            rf"amount{_GAP}([0-9.,]+)",
            rf"total{_GAP}([0-9.,]+)",
            rf"\${_HSPACE}*([0-9.,]+)",
            r"([0-9]+\.[0-9]{2})",
        ),
        "description": (
            r"description" + _REST_OF_LINE,
            r"service" + _REST_OF_LINE,
            r"treatment" + _REST_OF_LINE,
        ),
        "number_of_treatments": (
            rf"treatments?{_GAP}([0-9]+)",
            rf"sessions?{_GAP}([0-9]+)",
            rf"visits?{_GAP}([0-9]+)",
            rf"([0-9]+){_HSPACE}+(?:treatments?|sessions?|visits?)\b",
        ),
        "invoice_number": (
            rf"invoice(?:[:#]|{_HSPACE})+([a-z0-9]+)",
            rf"receipt(?:[:#]|{_HSPACE})+([a-z0-9]+)",
            r"#([a-z0-9]+)",
        ),
    }
)


@dataclass(frozen=True)
class FieldRule:
    """Ordered candidate patterns for one claim field."""

    field_name: str
    patterns: tuple[re.Pattern[str], ...]

    @classmethod
    def compile(cls, field_name: str, sources: list[str] | tuple[str, ...]) -> "FieldRule":
        """Compile pattern sources into a rule.

        Args:
            field_name: ClaimRecord attribute the rule fills.
            sources: Regex sources in priority order.

        Raises:
            ValueError: If the field is unknown, no patterns are given,
                or a pattern defines more than one capture group.
        """
        if field_name not in CLAIM_FIELDS:
            raise ValueError(f"Unknown claim field: {field_name}")
        if not sources:
            raise ValueError(f"No patterns given for field: {field_name}")

        compiled: list[re.Pattern[str]] = []
        for source in sources:
            pattern = re.compile(source, _FLAGS)
            if pattern.groups > 1:
                raise ValueError(
                    f"Pattern for {field_name} has {pattern.groups} groups: {source}"
                )
            compiled.append(pattern)
        return cls(field_name=field_name, patterns=tuple(compiled))


class ExtractionRules(Mapping[str, FieldRule]):
    """Immutable field name to ``FieldRule`` table covering every claim field."""

    def __init__(self, rules: Mapping[str, FieldRule]) -> None:
        missing = [name for name in CLAIM_FIELDS if name not in rules]
        if missing:
            raise ValueError(f"Missing rules for fields: {', '.join(missing)}")
        self._rules = MappingProxyType({name: rules[name] for name in CLAIM_FIELDS})

    def __getitem__(self, field_name: str) -> FieldRule:
        return self._rules[field_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def pattern_counts(self) -> dict[str, int]:
        return {name: len(rule.patterns) for name, rule in self._rules.items()}


def build_rules(
    overrides: Mapping[str, list[str]] | None = None,
) -> ExtractionRules:
    """Build extraction rules from the defaults plus per-field overrides.

    Args:
        overrides: Field name to replacement pattern list. Fields not
            listed keep their default patterns.

    Returns:
        Compiled, immutable extraction rules.
    """
    sources: dict[str, tuple[str, ...] | list[str]] = dict(DEFAULT_PATTERNS)
    for field_name, patterns in (overrides or {}).items():
        if field_name not in CLAIM_FIELDS:
            raise ValueError(f"Unknown claim field: {field_name}")
        sources[field_name] = patterns
    return ExtractionRules(
        {name: FieldRule.compile(name, pats) for name, pats in sources.items()}
    )


def load_rules(path: Path | None) -> ExtractionRules:
    """Load pattern overrides from a YAML file.

    The file maps claim field names to lists of regex strings. A missing
    or empty file yields the default rules.

    Args:
        path: YAML file with pattern overrides, or ``None``.

    Returns:
        Compiled extraction rules.
    """
    if path is None or not path.exists():
        if path is not None:
            logger.debug("No pattern file at %s, using default patterns", path)
        return DEFAULT_RULES

    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Pattern file {path} must map field names to lists")

    logger.info("Loaded pattern overrides for %d fields from %s", len(data), path)
    return build_rules(data)


DEFAULT_RULES = build_rules()
