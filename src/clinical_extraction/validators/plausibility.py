# ============================================================================
# src/clinical_extraction/validators/plausibility.py
# ============================================================================
"""
Vital-Sign Plausibility Checks

Physiologically possible boundaries for regex-parsed vitals. A reading
outside its range is treated as a false-positive match and dropped.

Example:
- PR 680 /min  -> FAIL (OCR inserted a digit)
- PR 68 /min   -> PASS
"""

import re
from typing import Tuple, Optional
import logging

from ..constants.vitals import VITAL_RANGES


logger = logging.getLogger(__name__)

# Readings at or below this are taken as Celsius
CELSIUS_CEILING = 45.0


class VitalPlausibilityChecker:
    """
    Check parsed vital signs against physiological ranges.

    Ranges come from knowledge/vital_ranges.json:
    pulse, respiratory_rate, spo2, systolic, diastolic,
    temperature_f, temperature_c.
    """

    def __init__(self):
        self.ranges = VITAL_RANGES

    def check(self, field_name: str, value: float) -> Tuple[bool, Optional[str]]:
        """
        Check if a numeric reading is plausible.

        Args:
            field_name: Range key (e.g. "pulse")
            value: Numeric reading

        Returns:
            (is_plausible, reason_if_not)
        """
        # Unknown vitals are assumed plausible
        if field_name not in self.ranges:
            return True, None

        min_val, max_val, unit = self.ranges[field_name]

        if value < min_val:
            reason = f"Value {value} below plausible minimum {min_val:g} {unit}"
            logger.warning(f"{field_name}: {reason}")
            return False, reason

        if value > max_val:
            reason = f"Value {value} above plausible maximum {max_val:g} {unit}"
            logger.warning(f"{field_name}: {reason}")
            return False, reason

        return True, None

    def check_blood_pressure(self, reading: str) -> Tuple[bool, Optional[str]]:
        """Check an "sys/dia" reading; both halves must be in range."""
        parts = re.sub(r"\s", "", reading).split("/")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            return False, f"Unreadable blood pressure '{reading}'"

        ok, reason = self.check("systolic", float(parts[0]))
        if not ok:
            return ok, reason
        return self.check("diastolic", float(parts[1]))

    def check_temperature(self, reading: str) -> Tuple[bool, Optional[str]]:
        """
        Check a temperature reading.

        "AFEBRILE" is accepted. Numbers at or below 45 are checked as
        Celsius, anything higher as Fahrenheit.
        """
        if "AFEBRILE" in reading.upper():
            return True, None

        match = re.search(r"\d+(?:\.\d+)?", reading)
        if not match:
            return False, f"Unreadable temperature '{reading}'"

        value = float(match.group(0))
        field_name = "temperature_c" if value <= CELSIUS_CEILING else "temperature_f"
        return self.check(field_name, value)

    def get_range(self, field_name: str) -> Optional[Tuple[float, float, str]]:
        """
        Get plausibility range for a vital.

        Returns:
            (min, max, unit) or None if unknown
        """
        return self.ranges.get(field_name)


def check_plausibility(field_name: str, value: float) -> bool:
    """Quick plausibility check."""
    checker = VitalPlausibilityChecker()
    is_plausible, _ = checker.check(field_name, value)
    return is_plausible
