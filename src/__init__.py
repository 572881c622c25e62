"""
SiWarga - Source Package

Monthly dues tracking for a housing complex: residents log in with a
house PIN and report payments, the treasurer reviews them.

DESIGN PRINCIPLES:
1. PINs are stored as digests, legacy plaintext is upgraded on login
2. Fail early, fail visibly
3. No silent corrections
4. Every step must be auditable
5. Storage layer is swappable (local demo store or Google Sheets)
"""

__version__ = "1.0.0"
__author__ = "SiWarga Team"
