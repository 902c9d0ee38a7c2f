__all__ = [
    "get_engine",
    "Incident",
    "BuildingFootprint",
    "CountryCatalog",
    "load_acled_config",
    "SpatialVaultError",
]
__version__ = "0.1.0"

from .db import get_engine
from .decode import CountryCatalog
from .errors import SpatialVaultError
from .etl.footprint import BuildingFootprint
from .etl.incident import Incident
from .settings import load_acled_config
