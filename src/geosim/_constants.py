"""Internal constants shared across the library."""

ROUTING_URL = "https://router.project-osrm.org/route/v1"
ROUTING_PROFILE = "driving"
USER_AGENT = "geosim/1"

EARTH_RADIUS_M = 6_371_000.0

# Fallback position when nothing else is known (Bonn, DE).
DEFAULT_LATITUDE = 50.7373889
DEFAULT_LONGITUDE = 7.0981944

DEFAULT_CONFIG_PATH = "./data/config.json"

# ------------------------------------------------------------------
# Route fetch backoff (seconds per attempt number)
# ------------------------------------------------------------------

RATE_LIMIT_BACKOFF_S = 0.5
ERROR_BACKOFF_S = 0.2

# ------------------------------------------------------------------
# Outbound socket messages
# ------------------------------------------------------------------

MODEL_UPDATE_COMMAND = "model.update"
POSITION_MODEL = "NamedGeoReferencedItem"
STATUS_MODEL = "Unit"
