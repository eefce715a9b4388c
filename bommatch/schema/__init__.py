"""BOM schema definitions: template columns, header aliases and static lookup tables.

Everything in this module is immutable configuration data built once at
import time. Bump SCHEMA_VERSION whenever a table changes in a way that
alters matching results.
"""

from typing import Dict, List, Any, Tuple

SCHEMA_VERSION = "1"

# Upload limits
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

MIME_CSV = "text/csv"
MIME_XLS = "application/vnd.ms-excel"
MIME_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ACCEPTED_MIME_TYPES = (MIME_CSV, MIME_XLS, MIME_XLSX)

# Template columns in positional order
TEMPLATE_HEADERS = [
    "family",
    "grade",
    "dimension",
    "quantity",
    "unit",
    "length_m",
    "finish",
    "standard",
    "notes",
]

# Columns every data row must carry (values may still be blank, except quantity)
REQUIRED_COLUMNS = ["family", "grade", "dimension", "quantity", "unit"]

# Mapping of common header variations (English and Romanian) to template columns
COLUMN_MAPPINGS = {
    "family": [
        "family", "familie", "familia", "product family", "category",
        "categorie", "type", "tip"
    ],
    "grade": [
        "grade", "grad", "material grade", "steel grade", "material",
        "calitate", "marca", "marca otel"
    ],
    "dimension": [
        "dimension", "dimensions", "dimensiune", "dimensiuni", "size",
        "marime", "profile", "section"
    ],
    "quantity": [
        "quantity", "qty", "qty.", "cantitate", "cant", "cant.", "amount", "count"
    ],
    "unit": [
        "unit", "units", "uom", "unit of measure", "unitate", "unitate de masura",
        "um", "u.m."
    ],
    "length_m": [
        "length", "length m", "length (m)", "lungime", "lungime m",
        "lungime (m)", "cut length"
    ],
    "finish": [
        "finish", "finisaj", "surface", "coating", "acoperire"
    ],
    "standard": [
        "standard", "norm", "norma", "standards"
    ],
    "notes": [
        "notes", "note", "comments", "comment", "remarks", "observatii"
    ],
}

# Product family vocabulary
FAMILIES = ("profiles", "plates", "pipes", "fasteners", "stainless", "nonferrous")

# Family synonyms folded to the vocabulary (keys are lower-cased, accent-free)
FAMILY_ALIASES = {
    "profile": "profiles",
    "profil": "profiles",
    "profiles": "profiles",
    "profile laminate": "profiles",
    "beams": "profiles",
    "beam": "profiles",
    "grinzi": "profiles",
    "plate": "plates",
    "plates": "plates",
    "sheet": "plates",
    "sheets": "plates",
    "tabla": "plates",
    "table": "plates",
    "pipe": "pipes",
    "pipes": "pipes",
    "tube": "pipes",
    "tubes": "pipes",
    "teava": "pipes",
    "tevi": "pipes",
    "fastener": "fasteners",
    "fasteners": "fasteners",
    "bolts": "fasteners",
    "suruburi": "fasteners",
    "organe de asamblare": "fasteners",
    "stainless": "stainless",
    "stainless steel": "stainless",
    "inox": "stainless",
    "nonferrous": "nonferrous",
    "non-ferrous": "nonferrous",
    "non ferrous": "nonferrous",
    "neferoase": "nonferrous",
    "aluminium": "nonferrous",
    "aluminum": "nonferrous",
    "aluminiu": "nonferrous",
    "copper": "nonferrous",
    "cupru": "nonferrous",
}

# Grade aliases keyed on the compact form (upper-case, no spaces, hyphens or underscores)
GRADE_ALIASES = {
    # Romanian STAS designations
    "OL37": "S235JR",
    "OL372K": "S235JR",
    "OL44": "S275JR",
    "OL52": "S355JR",
    "OL523K": "S355J2",
    # DIN designations
    "ST37": "S235JR",
    "ST372": "S235JR",
    "ST373": "S235J2",
    "ST44": "S275JR",
    "ST442": "S275JR",
    "ST523": "S355J2",
    "RST37": "S235JR",
    "RST372": "S235JR",
    # Stainless: EN numbers and names to AISI
    "1.4301": "AISI 304",
    "X5CRNI1810": "AISI 304",
    "AISI304": "AISI 304",
    "INOX304": "AISI 304",
    "1.4307": "AISI 304L",
    "X2CRNI1810": "AISI 304L",
    "AISI304L": "AISI 304L",
    "1.4401": "AISI 316",
    "X5CRNIMO17122": "AISI 316",
    "AISI316": "AISI 316",
    "1.4404": "AISI 316L",
    "X2CRNIMO17122": "AISI 316L",
    "AISI316L": "AISI 316L",
    # Aluminium
    "ENAW6060": "6060",
    "ALMGSI0.5": "6060",
    "ENAW6082": "6082",
    "ALSI1MGMN": "6082",
    "ENAW1050": "1050",
    "AL99.5": "1050",
}

# Property-class prefixes stripped from fastener grades ("Clasa 8.8" -> "8.8")
GRADE_CLASS_PREFIXES = ("CLASA", "CLASS", "GRADE", "KLASSE", "CL.")

# Canonical quantity units: mass, mass, length, count
UNITS = ("kg", "t", "m", "pcs")

DEFAULT_UNIT = "pcs"

# Unit synonyms folded before falling back to pint (keys are lower-cased, accent-free)
UNIT_SYNONYMS = {
    "kg": "kg",
    "kgs": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "kilogram(s)": "kg",
    "kilograme": "kg",
    "mass": "kg",
    "t": "t",
    "to": "t",
    "ton": "t",
    "tons": "t",
    "tonne": "t",
    "tonnes": "t",
    "tona": "t",
    "tone": "t",
    "m": "m",
    "ml": "m",
    "m.l.": "m",
    "metru": "m",
    "metri": "m",
    "metre": "m",
    "metres": "m",
    "meter": "m",
    "meters": "m",
    "length": "m",
    "buc": "pcs",
    "buc.": "pcs",
    "bucata": "pcs",
    "bucati": "pcs",
    "pc": "pcs",
    "pcs": "pcs",
    "pcs.": "pcs",
    "piece": "pcs",
    "pieces": "pcs",
    "ea": "pcs",
    "each": "pcs",
    "unit": "pcs",
    "units": "pcs",
    "count": "pcs",
}

# Dimension feature names per family (the full feature vector)
FAMILY_FEATURES: Dict[str, Tuple[str, ...]] = {
    "profiles": ("height", "width", "web_thickness", "flange_thickness"),
    "plates": ("thickness", "width_mm", "length_mm"),
    "pipes": ("diameter", "height", "width", "thickness"),
    "fasteners": ("diameter", "length"),
    "stainless": ("thickness", "width_mm", "length_mm", "diameter"),
    "nonferrous": ("thickness", "width_mm", "length_mm", "diameter"),
}

# Shape layouts per family: the field order numbers are read into, and the
# field sets a fully specified catalog entry carries. First layout is the default.
FAMILY_LAYOUTS: Dict[str, List[Tuple[str, ...]]] = {
    "profiles": [("height", "width", "web_thickness", "flange_thickness")],
    "plates": [("thickness", "width_mm", "length_mm")],
    "pipes": [("diameter", "thickness"), ("height", "width", "thickness")],
    "fasteners": [("diameter", "length")],
    "stainless": [("thickness", "width_mm", "length_mm"), ("diameter", "thickness")],
    "nonferrous": [("thickness", "width_mm", "length_mm"), ("diameter", "thickness")],
}

# European section series: which feature the nominal size denotes
PROFILE_SERIES = {
    "HEA": "width",
    "HEB": "width",
    "HEM": "width",
    "IPE": "height",
    "IPN": "height",
    "INP": "height",
    "UPN": "height",
    "UNP": "height",
    "UPE": "height",
}

# Canonical field schemas for each template column
CANONICAL_FIELDS: List[Dict[str, Any]] = [
    {
        "id": "family",
        "label": "Family",
        "aliases": COLUMN_MAPPINGS["family"],
        "required": True,
        "examples": ["profiles", "plates", "pipes"],
        "description": "Product family. Unknown families are kept but cannot be matched automatically."
    },
    {
        "id": "grade",
        "label": "Grade",
        "aliases": COLUMN_MAPPINGS["grade"],
        "required": True,
        "examples": ["S235JR", "S235JR", "S235JRH"],
        "description": "Material grade designation, e.g. S235JR, S355J2, AISI 304, 8.8."
    },
    {
        "id": "dimension",
        "label": "Dimension",
        "aliases": COLUMN_MAPPINGS["dimension"],
        "required": True,
        "examples": ["HEA 100", "6mm", "40x20x2"],
        "description": "Dimensions in mm, separated by 'x' (HxWxT for profiles, TxWxL for plates, DxT or HxWxT for pipes)."
    },
    {
        "id": "quantity",
        "label": "Quantity",
        "aliases": COLUMN_MAPPINGS["quantity"],
        "required": True,
        "examples": ["10", "500", "12"],
        "description": "Positive quantity. Decimal comma or point are both accepted."
    },
    {
        "id": "unit",
        "label": "Unit",
        "aliases": COLUMN_MAPPINGS["unit"],
        "required": True,
        "examples": ["pcs", "kg", "m"],
        "description": "Unit of measure: kg, t, m or pcs. Blank means pcs."
    },
    {
        "id": "length_m",
        "label": "Length (m)",
        "aliases": COLUMN_MAPPINGS["length_m"],
        "required": False,
        "examples": ["6", "", "6"],
        "description": "Optional cut length in metres."
    },
    {
        "id": "finish",
        "label": "Finish",
        "aliases": COLUMN_MAPPINGS["finish"],
        "required": False,
        "examples": ["", "", "galvanized"],
        "description": "Optional surface finish."
    },
    {
        "id": "standard",
        "label": "Standard",
        "aliases": COLUMN_MAPPINGS["standard"],
        "required": False,
        "examples": ["EN 10025", "EN 10025", "EN 10219"],
        "description": "Optional product standard."
    },
    {
        "id": "notes",
        "label": "Notes",
        "aliases": COLUMN_MAPPINGS["notes"],
        "required": False,
        "examples": ["", "", ""],
        "description": "Free-form notes carried through to the quote request."
    },
]

# Create a lookup dictionary by field ID for easy access
FIELD_SCHEMAS: Dict[str, Dict[str, Any]] = {
    field["id"]: field for field in CANONICAL_FIELDS
}

__all__ = [
    "SCHEMA_VERSION",
    "MAX_UPLOAD_BYTES",
    "MIME_CSV",
    "MIME_XLS",
    "MIME_XLSX",
    "ACCEPTED_MIME_TYPES",
    "TEMPLATE_HEADERS",
    "REQUIRED_COLUMNS",
    "COLUMN_MAPPINGS",
    "FAMILIES",
    "FAMILY_ALIASES",
    "GRADE_ALIASES",
    "GRADE_CLASS_PREFIXES",
    "UNITS",
    "DEFAULT_UNIT",
    "UNIT_SYNONYMS",
    "FAMILY_FEATURES",
    "FAMILY_LAYOUTS",
    "PROFILE_SERIES",
    "CANONICAL_FIELDS",
    "FIELD_SCHEMAS",
]
