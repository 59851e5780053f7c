"""Global constants for dataset ingestion."""

from __future__ import annotations

# Scalar column roles and the column name each role binds to when unconfigured
ROLE_DEFAULTS = {
    "id": "id",
    "time": "time",
    "amt": "amt",
    "evid": "evid",
    "cmt": "cmt",
    "ii": "ii",
    "addl": "addl",
    "rate": "rate",
    "ss": "ss",
}
MANDATORY_ROLES = ("id", "time")
NUMERIC_ROLES = ("time", "amt", "cmt", "ii", "addl", "rate", "ss")

# Observation columns bound when none are configured
DEFAULT_OBSERVATION_COLUMNS = ("dv",)

# Event-type codes (NONMEM EVID convention)
DOSE_EVID = 1
OBSERVATION_EVID = 0

# Negative RATE values that ask the model to supply rate (-1) or duration (-2)
MODELED_RATE_CODES = (-1.0, -2.0)
STEADY_STATE_CODES = (0, 1, 2)

# Text cells treated as the missing marker
DEFAULT_MISSING_VALUES = ("", ".", "NA")

# Thread count above which configuration validation warns
MAX_RECOMMENDED_THREADS = 16
