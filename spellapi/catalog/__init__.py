"""
Catalog package for the spell API.

Turns client filter parameters into store queries (``filters``), applies
the catalog rules on top of a document store (``service``), creates spells
in bulk with per-item outcomes (``batch``) and exposes it all over HTTP
(``router``).
"""

from .router import router as catalog_router  # noqa: F401
from .service import SpellCatalog  # noqa: F401
