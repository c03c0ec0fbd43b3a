"""Internal constants shared across the library."""

ORS_BASE_URL = "https://api.openrouteservice.org"
ORS_PROFILE = "driving-car"
STORE_BASE_URL = "http://localhost:5000"
USER_AGENT = "pyfleet/1"

DEFAULT_PROVIDER_TIMEOUT: float = 10.0
DEFAULT_CHANNEL_PREFIX = "vehicle_location/"

# ORS rejects directions requests above 50 waypoints and the free plan caps
# optimization at 50 jobs per request.
MAX_DIRECTIONS_WAYPOINTS = 50
MAX_OPTIMIZATION_JOBS = 50

# ------------------------------------------------------------------
# Fallback ETA model (equirectangular, no road network)
# ------------------------------------------------------------------

KM_PER_DEGREE = 111.0
MINUTES_PER_KM = 2.0
