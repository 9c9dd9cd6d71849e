"""Shift time & pay engine for the nanny booking platform."""

from nannyshift.errors import InvalidInput

__all__ = ["InvalidInput"]
