"""
Utility modules for AAS Package Studio.
"""

from aas_studio.utils.error_hints import friendly_error, guess_path_from_line
from aas_studio.utils.xsd_mapping import normalize_value_type, resolve_value_type

__all__ = ["normalize_value_type", "resolve_value_type", "friendly_error", "guess_path_from_line"]
