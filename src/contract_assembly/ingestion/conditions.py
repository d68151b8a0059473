"""Condition and marker extraction from paragraph text."""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..config.models import JurisdictionMapping
from ..models.enums import ServiceModel


EXHIBIT_HEADER_PATTERN = re.compile(
    r"^\s*EXHIBIT[\s\-]+([A-Z])(?![A-Za-z0-9])[\s:.\-–—]*(.*)$",
    re.IGNORECASE,
)
STRICT_EXHIBIT_HEADER_PATTERN = re.compile(
    r"^EXHIBIT\s+([A-Z])(?:\s*[:.\-–—]\s*\S.*|\s+\S.*)?$"
)
DISCLOSURE_PATTERN = re.compile(r"\[STATE_DISCLOSURE:([A-Z0-9_]+)\]")
CRC_PATTERN = re.compile(r"\bCRC\b")
CMOS_PATTERN = re.compile(r"\bCMOS\b")

EXHIBIT_HEADER_MAX = 120
JURISDICTION_LINE_MAX = 80
JURISDICTION_SUFFIXES = {
    "PROVISIONS", "PROVISION", "SPECIFIC", "DISCLOSURES", "DISCLOSURE",
    "ADDENDUM", "REQUIREMENTS", "NOTICES", "NOTICE", "LAW",
}

US_JURISDICTIONS: Dict[str, List[str]] = {
    "AL": ["Alabama"], "AK": ["Alaska"], "AZ": ["Arizona"], "AR": ["Arkansas"],
    "CA": ["California"], "CO": ["Colorado"], "CT": ["Connecticut"], "DE": ["Delaware"],
    "DC": ["District of Columbia", "Washington D.C.", "Washington, D.C."],
    "FL": ["Florida"], "GA": ["Georgia"], "HI": ["Hawaii"], "ID": ["Idaho"],
    "IL": ["Illinois"], "IN": ["Indiana"], "IA": ["Iowa"], "KS": ["Kansas"],
    "KY": ["Kentucky"], "LA": ["Louisiana"], "ME": ["Maine"], "MD": ["Maryland"],
    "MA": ["Massachusetts"], "MI": ["Michigan"], "MN": ["Minnesota"], "MS": ["Mississippi"],
    "MO": ["Missouri"], "MT": ["Montana"], "NE": ["Nebraska"], "NV": ["Nevada"],
    "NH": ["New Hampshire"], "NJ": ["New Jersey"], "NM": ["New Mexico"], "NY": ["New York"],
    "NC": ["North Carolina"], "ND": ["North Dakota"], "OH": ["Ohio"], "OK": ["Oklahoma"],
    "OR": ["Oregon"], "PA": ["Pennsylvania"], "RI": ["Rhode Island"], "SC": ["South Carolina"],
    "SD": ["South Dakota"], "TN": ["Tennessee"], "TX": ["Texas"], "UT": ["Utah"],
    "VT": ["Vermont"], "VA": ["Virginia"], "WA": ["Washington"], "WV": ["West Virginia"],
    "WI": ["Wisconsin"], "WY": ["Wyoming"],
}


def default_jurisdictions() -> List[JurisdictionMapping]:
    return [JurisdictionMapping(code=code, names=names) for code, names in US_JURISDICTIONS.items()]


@dataclass(frozen=True)
class ExhibitHeader:
    """Exhibit header found at the start of a paragraph."""
    letter: str
    title: str
    text: str
    strict: bool = True


@dataclass(frozen=True)
class MarkerScan:
    """
    Markers found in one paragraph.

    ``cleaned_text`` is the paragraph text with disclosure markers removed.
    """
    cleaned_text: str
    exhibit: Optional[ExhibitHeader] = None
    jurisdiction: Optional[str] = None
    disclosure_codes: Tuple[str, ...] = ()
    service_model: Optional[ServiceModel] = None

    @property
    def disclosure_code(self) -> Optional[str]:
        return self.disclosure_codes[0] if self.disclosure_codes else None


class ConditionExtractor:
    """
    Detects exhibit headers, jurisdiction names, disclosure markers and
    service-model keywords in paragraph text.

    Each detector runs independently; the tree builder decides how the
    findings change its ambient state.
    """

    def __init__(self, jurisdictions: Optional[Sequence[JurisdictionMapping]] = None):
        mappings = default_jurisdictions()
        if jurisdictions:
            overrides = {j.code for j in jurisdictions}
            mappings = [m for m in mappings if m.code not in overrides] + list(jurisdictions)
        # Longest names first so "West Virginia" wins over "Virginia".
        self._names: List[Tuple[str, str]] = sorted(
            ((name.upper(), m.code) for m in mappings for name in m.names),
            key=lambda pair: len(pair[0]),
            reverse=True,
        )

    def scan(self, text: str) -> MarkerScan:
        codes = tuple(DISCLOSURE_PATTERN.findall(text))
        cleaned = " ".join(DISCLOSURE_PATTERN.sub(" ", text).split()) if codes else text.strip()

        exhibit = self.match_exhibit_header(cleaned)
        jurisdiction_text = exhibit.title if exhibit else cleaned
        return MarkerScan(
            cleaned_text=cleaned,
            exhibit=exhibit,
            jurisdiction=self.match_jurisdiction(jurisdiction_text),
            disclosure_codes=codes,
            service_model=self.match_service_model(cleaned),
        )

    @staticmethod
    def match_exhibit_header(text: str) -> Optional[ExhibitHeader]:
        """
        Match a line beginning with EXHIBIT and a single letter.

        The loose pattern decides the split; ``strict`` records whether
        the stricter header format was also satisfied.
        """
        stripped = text.strip()
        if len(stripped) > EXHIBIT_HEADER_MAX:
            return None
        match = EXHIBIT_HEADER_PATTERN.match(stripped)
        if not match:
            return None
        title = match.group(2).strip().rstrip(".:").strip()
        return ExhibitHeader(
            letter=match.group(1).upper(),
            title=title,
            text=stripped,
            strict=STRICT_EXHIBIT_HEADER_PATTERN.match(stripped) is not None,
        )

    def match_jurisdiction(self, text: str) -> Optional[str]:
        """Return the jurisdiction code a short header line introduces."""
        line = text.strip().upper()
        if not line or len(line) > JURISDICTION_LINE_MAX:
            return None
        for name, code in self._names:
            if not line.startswith(name):
                continue
            rest = line[len(name):]
            if rest and rest[0].isalnum():
                continue
            words = re.findall(r"[A-Z]+", rest)
            if not words or words[0] in JURISDICTION_SUFFIXES:
                return code
        return None

    @staticmethod
    def match_service_model(text: str) -> Optional[ServiceModel]:
        """CRC or CMOS, only when exactly one of them appears."""
        has_crc = CRC_PATTERN.search(text) is not None
        has_cmos = CMOS_PATTERN.search(text) is not None
        if has_crc and not has_cmos:
            return ServiceModel.CRC
        if has_cmos and not has_crc:
            return ServiceModel.CMOS
        return None
