"""
app/validators package marker.
"""

from app.validators.furips_validator import FuripsFileValidator, iter_lines

__all__ = [
    "FuripsFileValidator",
    "iter_lines",
]
