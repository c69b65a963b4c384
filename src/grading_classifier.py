#!/usr/bin/env python3
"""
GRADING CLASSIFIER - Map numeric grades (0-20 scale) to qualitative bands

BANDS (upper bound inclusive):
✅ DESTACADO:       17.01 - 20
✅ BUENO:           15.01 - 17
✅ ACEPTABLE:       11.01 - 15
✅ INSATISFACTORIO: 0 - 11 (includes exactly 11)

EDGE CASES HANDLED:
- Grades above 20 or below 0 are not validated here; they fall through
  the comparison chain to INSATISFACTORIO
- NaN compares false everywhere and also lands in INSATISFACTORIO
"""

from evaluation_models import Classification

# Bands checked top-down as (lower exclusive, upper inclusive)
GRADE_BANDS = [
    (17.0, 20.0, Classification.DESTACADO),
    (15.0, 17.0, Classification.BUENO),
    (11.0, 15.0, Classification.ACEPTABLE),
]

# Display order used by distribution tables and pie charts
CLASSIFICATION_ORDER = [
    Classification.INSATISFACTORIO,
    Classification.ACEPTABLE,
    Classification.BUENO,
    Classification.DESTACADO,
]


def classify(grade: float) -> Classification:
    """Return the qualitative band for a numeric grade"""
    for lower, upper, band in GRADE_BANDS:
        if lower < grade <= upper:
            return band
    return Classification.INSATISFACTORIO

