"""Rule-based claim field extraction.

Maps OCR text onto the fixed ``ClaimRecord`` schema. For each field the
patterns are tried in priority order against the whole lower-cased
text, and the first one that matches decides the value.
"""

from dataclasses import dataclass

from claim_ocr.errors import ExtractionFailedError
from claim_ocr.models import CLAIM_FIELDS, ClaimRecord
from claim_ocr.utils.logger import get_logger

from .rules import DEFAULT_RULES, ExtractionRules

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExtractionContext:
    """Normalized text for a single extraction call."""

    text: str

    @classmethod
    def from_raw(cls, raw_text: str) -> "ExtractionContext":
        return cls(text=raw_text.lower())


@dataclass
class ExtractedField:
    """A field value located by one of its patterns."""

    field_name: str
    value: str
    pattern_index: int
    start_pos: int
    end_pos: int


class FieldExtractor:
    """First-match-wins regex extractor for claim fields.

    Args:
        rules: Compiled pattern table. Defaults to the built-in rules.
    """

    def __init__(self, rules: ExtractionRules | None = None) -> None:
        self.rules = rules or DEFAULT_RULES

    def match_field(
        self, field_name: str, context: ExtractionContext
    ) -> ExtractedField | None:
        """Find the value of one field.

        Args:
            field_name: ClaimRecord attribute to extract.
            context: Normalized document text.

        Returns:
            The match from the highest-priority pattern that hits, or
            ``None`` when no pattern matches.
        """
        for index, pattern in enumerate(self.rules[field_name].patterns):
            match = pattern.search(context.text)
            if match is None:
                continue
            if pattern.groups and match.group(1) is not None:
                value = match.group(1)
            else:
                value = match.group(0)
            return ExtractedField(
                field_name=field_name,
                value=value.strip(),
                pattern_index=index,
                start_pos=match.start(),
                end_pos=match.end(),
            )
        return None

    def extract_fields(self, text: str) -> list[ExtractedField]:
        """Return every field that matched, in schema order."""
        context = ExtractionContext.from_raw(text)
        matches = (self.match_field(name, context) for name in CLAIM_FIELDS)
        return [m for m in matches if m is not None]

    def extract(self, text: str) -> ClaimRecord:
        """Build a claim record from OCR text.

        Unmatched fields are left as empty strings; that is a normal
        outcome, not a failure.

        Args:
            text: Raw or already lower-cased OCR text.

        Returns:
            A new claim record with all fields populated.

        Raises:
            ExtractionFailedError: On an unexpected fault while matching.
        """
        try:
            fields = self.extract_fields(text)
            record = ClaimRecord(**{f.field_name: f.value for f in fields})
        except Exception as exc:
            raise ExtractionFailedError(f"Field extraction failed: {exc}") from exc

        logger.info(
            "Extracted %d of %d claim fields", len(fields), len(CLAIM_FIELDS)
        )
        return record
