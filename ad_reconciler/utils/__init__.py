"""Small, side-effect free helpers shared by the directory engine.

Keep this package dependency-light to avoid circular imports.
"""

from .dn import dn_equal, normalize_dn, parent_dn  # noqa: F401
