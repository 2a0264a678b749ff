"""
Polis Governance Constants

This module consolidates the global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from decimal import Decimal
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# FIXED-POINT PRECISION
# ==================================================================================
# Token amounts are quoted with 6 decimal places (1 token = 1_000_000 units).
TOKEN_DECIMALS = 6
TOKEN_QUANTUM = Decimal(1).scaleb(-TOKEN_DECIMALS)

# The reward index is kept at 18 decimal places; whatever cannot be expressed
# at that precision is carried forward to the next income deposit.
REWARD_INDEX_PRECISION = 18
REWARD_INDEX_QUANTUM = Decimal(1).scaleb(-REWARD_INDEX_PRECISION)

# Working precision for intermediate products (amount * index).
DECIMAL_CONTEXT_PRECISION = 60


# ==================================================================================
# GOVERNANCE PARAMETERS (defaults, overridable through polis.config)
# ==================================================================================
GOVERNANCE_QUORUM = Decimal("0.10")               # 10% of stake at poll creation
GOVERNANCE_THRESHOLD = Decimal("0.50")            # 50% of yes+no
GOVERNANCE_VOTING_PERIOD = 94_097                 # blocks (~7 days)
GOVERNANCE_TIMELOCK_PERIOD = 40_327               # blocks (~3 days)
GOVERNANCE_EXPIRATION_PERIOD = 13_443             # blocks (~1 day)
GOVERNANCE_PROPOSAL_DEPOSIT = Decimal("1000")     # tokens

GOVERNANCE_VOTE_YES = "yes"
GOVERNANCE_VOTE_NO = "no"
GOVERNANCE_VOTE_ABSTAIN = "abstain"

# Poll text limits
MIN_TITLE_LENGTH = 4
MAX_TITLE_LENGTH = 64
MIN_DESC_LENGTH = 4
MAX_DESC_LENGTH = 1024
MIN_LINK_LENGTH = 12
MAX_LINK_LENGTH = 128

# Query pagination
DEFAULT_QUERY_LIMIT = 10
MAX_QUERY_LIMIT = 30

# Community pool
COMMUNITY_DEFAULT_SPEND_LIMIT = Decimal("1000000")


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = dict(LOGGER_DEFAULTS)
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Only calls ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
