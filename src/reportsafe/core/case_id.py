"""
Case ID Generator

Mints, validates and decodes human-readable case identifiers of the form
RS-{TT}-{YYYYMM}-{SUFFIX}, e.g. RS-HR-202401-000042.

Two suffix strategies are supported:
- sequence: a counter value zero-padded to 6 digits. Unique as long as the
  caller obtains the sequence from an atomic counter (repositories do).
- random: 4 time-derived base-36 characters followed by 4 random hex
  characters. No collision check; the chance of two IDs colliding within the
  same month and millisecond window is about 1 in 65536.
"""

import logging
import re
import secrets
import time
from collections import Counter
from datetime import date, datetime
from typing import Callable, Dict, Iterable, Optional, Set

from reportsafe.core.errors import InvalidIncidentTypeError, MalformedCaseIdError
from reportsafe.models.query import CaseIdComponents
from reportsafe.models.report import IncidentType, utcnow

logger = logging.getLogger(__name__)

PREFIX = "RS"
DEFAULT_TYPE_CODE = "GN"
SEQUENCE_WIDTH = 6

# YYYYMM must be a real calendar month; unmapped type codes decode as GN
CASE_ID_PATTERN = re.compile(r"^RS-(?:([A-Z]{2})-)?((?!0000)\d{4}(?:0[1-9]|1[0-2]))-([A-Z0-9]{6,8})$")

TYPE_CODES: Dict[str, str] = {
    "harassment": "HR",
    "threats": "TH",
    "image_abuse": "IA",
    "cyberstalking": "CS",
    "doxxing": "DX",
    "deepfake": "DF",
}

TYPE_NAMES: Dict[str, str] = {
    "HR": "Harassment",
    "TH": "Threats",
    "IA": "Image Abuse",
    "CS": "Cyberstalking",
    "DX": "Doxxing",
    "DF": "Deepfake",
    "GN": "General",
}

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_KNOWN_TYPES = frozenset(t.value for t in IncidentType)


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def sequence_scope(moment: datetime) -> str:
    """Counter key for sequential case numbers; sequences restart every month"""
    return f"case_id:{moment:%Y%m}"


class CaseIdGenerator:
    """Case identifier codec"""

    def __init__(self, strict: bool = False, clock: Callable[[], datetime] = utcnow):
        """
        Args:
            strict: Raise InvalidIncidentTypeError for values outside the
                incident type vocabulary instead of falling back to GN
            clock: Source of the current time (year/month component)
        """
        self.strict = strict
        self.clock = clock

    def type_code(self, incident_type: Optional[str]) -> str:
        """Map an incident type to its two-letter code"""
        if incident_type is None:
            return DEFAULT_TYPE_CODE

        key = getattr(incident_type, "value", incident_type)
        if self.strict and key not in _KNOWN_TYPES:
            raise InvalidIncidentTypeError(incident_type)
        # Known types without a dedicated code (child_exploitation, other) are GN too
        return TYPE_CODES.get(key, DEFAULT_TYPE_CODE)

    def _random_suffix(self) -> str:
        timestamp = _to_base36(time.time_ns() // 1_000_000)[-4:].rjust(4, "0")
        return timestamp + secrets.token_hex(2).upper()

    def generate(self, incident_type: Optional[str] = None, sequence: Optional[int] = None) -> str:
        """
        Mint a new case ID

        Args:
            incident_type: Primary incident type (determines the type code)
            sequence: Counter value; when omitted a random suffix is used

        Returns:
            Case ID string

        Raises:
            InvalidIncidentTypeError: Unknown type on a strict generator
            ValueError: Sequence is not a positive integer that fits the suffix
        """
        code = self.type_code(incident_type)
        year_month = f"{self.clock():%Y%m}"

        if sequence is None:
            suffix = self._random_suffix()
        else:
            if sequence < 1 or sequence >= 10 ** 8:
                raise ValueError(f"Sequence out of range: {sequence}")
            suffix = str(sequence).zfill(SEQUENCE_WIDTH)

        return f"{PREFIX}-{code}-{year_month}-{suffix}"

    def validate(self, case_id: object) -> bool:
        """Check a value against the case ID grammar"""
        return isinstance(case_id, str) and CASE_ID_PATTERN.match(case_id) is not None

    def parse(self, case_id: str) -> CaseIdComponents:
        """
        Decode a case ID

        Raises:
            MalformedCaseIdError: If the value does not match the grammar
        """
        match = CASE_ID_PATTERN.match(case_id) if isinstance(case_id, str) else None
        if match is None:
            raise MalformedCaseIdError(case_id)

        type_code, year_month, unique_code = match.groups()
        if type_code not in TYPE_NAMES:
            type_code = DEFAULT_TYPE_CODE
        year, month = int(year_month[:4]), int(year_month[4:])

        return CaseIdComponents(
            full_id=case_id,
            prefix=PREFIX,
            type_code=type_code,
            type_name=TYPE_NAMES[type_code],
            year_month=year_month,
            year=year,
            month=month,
            unique_code=unique_code,
            approximate_created_at=date(year, month, 1),
        )

    def batch_generate(self, count: int = 10, incident_type: Optional[str] = None) -> Set[str]:
        """Generate `count` distinct random-suffix IDs"""
        if count < 0:
            raise ValueError("count must not be negative")

        ids: Set[str] = set()
        while len(ids) < count:
            ids.add(self.generate(incident_type))
        return ids

    def summarize(self, case_ids: Iterable[str]) -> dict:
        """Count case IDs by type, month and year. Malformed IDs are skipped."""
        by_type: Counter = Counter()
        by_month: Counter = Counter()
        by_year: Counter = Counter()
        total = 0

        for case_id in case_ids:
            total += 1
            try:
                parsed = self.parse(case_id)
            except MalformedCaseIdError:
                logger.warning(f"Skipping invalid case ID: {case_id}")
                continue
            by_type[parsed.type_name] += 1
            by_month[f"{parsed.year:04d}-{parsed.month:02d}"] += 1
            by_year[str(parsed.year)] += 1

        return {
            "total": total,
            "by_type": dict(by_type),
            "by_month": dict(by_month),
            "by_year": dict(by_year),
        }
