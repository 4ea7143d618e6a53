"""Test helpers for the uplink test suite.

Data Generators:
    generate_nmea_sentence - NMEA sentences with valid checksums
    make_fix - One fix with a predictable position and timestamp
    make_fixes - A time-ordered run of fixes

Async helpers:
    wait_until - Poll a predicate until it holds or a timeout expires
"""

from .generators import generate_nmea_sentence, make_fix, make_fixes
from .waiting import wait_until

__all__ = ["generate_nmea_sentence", "make_fix", "make_fixes", "wait_until"]
