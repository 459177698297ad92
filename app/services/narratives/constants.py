"""
Narrative Engine Constants

Read-only lookup data for the narrative engine:
- Section name to template category mapping
- Ordered regex pattern lists for variable extraction (first match wins)
- Fallback variable values
- Scoring weights and suggestion limits

Pattern order is significant: the extractor walks each list top to bottom
and returns the first capture of the first pattern that matches.
"""

import re

# Section name (lower-cased) -> template category. Anything else is OTHER.
SECTION_TO_CATEGORY_MAP: dict[str, str] = {
    "roofing": "ROOFING",
    "plumbing": "PLUMBING",
    "hvac": "HVAC",
    "electrical": "ELECTRICAL",
    "exterior": "EXTERIOR",
    "grounds": "EXTERIOR",
    "garage": "EXTERIOR",
    "interior": "INTERIOR",
    "bathroom": "INTERIOR",
    "kitchen": "INTERIOR",
    "rooms": "INTERIOR",
    "bedrooms": "INTERIOR",
}
DEFAULT_CATEGORY = "OTHER"


def _compile(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


LOCATION_PATTERNS = _compile(
    r"(north|south|east|west|northern|southern|eastern|western)",
    r"(nw|ne|sw|se|northwest|northeast|southwest|southeast)",
    r"(front|rear|back|side)",
    r"(garage|basement|attic|crawl\s*space)",
    r"(master|primary|guest|main)",
    r"(bedroom\s*\d+|bathroom\s*\d+|bath\s*\d+)",
    r"(first\s*floor|second\s*floor|third\s*floor|ground\s*floor)",
    r"(upper|lower|middle)",
)

# Group 1 is the quantity, group 2 (when present) the unit
QUANTITY_PATTERNS = _compile(
    r"(\d+)\s*(tiles|shingles|vents|outlets|panels|fixtures)",
    r"(\d+)\s*(ft|feet|in|inches|'|\")",
    r"(\d+)\s*(square\s*feet|sq\s*ft|sf)",
    r"(\d+)\s*(linear\s*feet|lf)",
    r"(multiple|several|many|few)",
)

CONDITION_PATTERNS = _compile(
    r"(damaged|missing|loose|leaking|improper|corroded|cracked)",
    r"(worn|deteriorated|broken|faulty|defective|malfunctioning)",
    r"(blocked|clogged|disconnected|improperly\s*installed)",
    r"(rusted|rotted|warped|sagging|settling)",
    r"(peeling|faded|stained|discolored)",
)

MATERIAL_PATTERNS = _compile(
    r"(wood|wooden|lumber|timber)",
    r"(concrete|cement|masonry|brick|stone)",
    r"(metal|steel|aluminum|copper|iron)",
    r"(vinyl|plastic|composite|fiberglass)",
    r"(asphalt|ceramic|tile|shingle)",
    r"(drywall|plaster|stucco)",
)

# Grouped by trade: roofing, electrical, plumbing, HVAC, windows/doors, structure
COMPONENT_PATTERNS = _compile(
    r"(shingles?|flashing|gutters?|downspouts?)",
    r"(outlets?|switches?|panels?|wiring)",
    r"(pipes?|faucets?|toilets?|sinks?|drains?)",
    r"(ductwork|vents?|units?|thermostats?)",
    r"(windows?|doors?|frames?|sills?)",
    r"(walls?|ceilings?|floors?|stairs?)",
)

AREA_PATTERNS = _compile(
    r"(kitchen|bathroom|bedroom|living\s*room|dining\s*room)",
    r"(garage|basement|attic|crawl\s*space)",
    r"(exterior|interior|roof|foundation)",
)

ROOM_NAME_PATTERNS = _compile(
    r"(master\s*bedroom|guest\s*bedroom|primary\s*bedroom)",
    r"(master\s*bathroom|guest\s*bathroom|powder\s*room)",
    r"(family\s*room|great\s*room|bonus\s*room)",
    r"(utility\s*room|laundry\s*room|mud\s*room)",
)

DIMENSION_PATTERNS = _compile(
    r"(\d+\s*x\s*\d+)",
    r"(\d+\s*by\s*\d+)",
    r"(\d+(?:\.\d+)?\s*(?:ft|feet|in|inches))",
)

# Applied after extraction and structured overrides when still unset
VARIABLE_DEFAULTS: dict[str, str] = {
    "location": "the area",
    "condition": "deficient",
    "component": "component",
    "area": "the property",
}

# Scoring weights
KEYWORD_OVERLAP_WEIGHT = 0.6
COMPONENT_MATCH_BOOST = 0.2
SEVERITY_MATCH_BOOST = 0.1
TAG_MATCH_BOOST = 0.05
TAG_BOOST_MAX = 0.2
USE_COUNT_BOOST = 0.01
USE_COUNT_BOOST_MAX = 0.1
MAX_SCORE = 1.0

# Suggestion limits
SUGGESTION_MIN_SCORE = 0.3  # exclusive
SUGGESTION_LIMIT = 5

UNRESOLVED_MARKER = "[unresolved]"
