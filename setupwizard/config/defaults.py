"""
Default values and validation rules.

Provides the local field rules the configure gate applies before asking
the server, and display names for installation phases.
"""

from typing import Any, Dict


IPV4_PATTERN = (
    r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
    r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
)

ENV_KEY_PATTERN = r"^[A-Z_][A-Z0-9_]*$"

# Local field rules, checked in order: required, pattern, min_length, validator.
FIELD_RULES: Dict[str, Dict[str, Any]] = {
    "EXTERNAL_IP": {
        "pattern": IPV4_PATTERN,
        "message": "Please enter a valid IPv4 address",
        "required": False,
    },
    "POSTGRES_PASSWORD": {
        "min_length": 16,
        "message": "Password must be at least 16 characters long",
        "required": False,
    },
    "CUSTOM_ENV": {
        "validator": "env_lines",
        "message": "Invalid environment variable format. Use KEY=value format",
        "required": False,
    },
}

DATABASE_PASSWORD_FIELD = "POSTGRES_PASSWORD"

# Offered by the interactive runner
TEMPLATES: Dict[str, Dict[str, Any]] = {
    "home-node": {
        "name": "Home Node",
        "description": "Personal node for local use",
        "profiles": ["core"],
    },
    "public-node": {
        "name": "Public Node",
        "description": "Node with public indexer services",
        "profiles": ["core", "indexer-services"],
    },
    "full-node": {
        "name": "Full Node",
        "description": "Node, user applications and indexers",
        "profiles": ["core", "kaspa-user-applications", "indexer-services"],
    },
    "mining-setup": {
        "name": "Mining Setup",
        "description": "Node with a mining stratum bridge",
        "profiles": ["core", "mining"],
    },
}

PROFILES = [
    "core",
    "kaspa-user-applications",
    "indexer-services",
    "archive-node",
    "mining",
    "explorer",
    "prod",
]

PHASE_NAMES: Dict[str, str] = {
    "preparing": "Preparing",
    "building": "Building Services",
    "starting": "Starting Services",
    "syncing": "Synchronizing",
    "validating": "Validating",
    "complete": "Complete",
}

# Session keys owned by a reconfiguration flow; dropped on exit.
RECONFIGURATION_KEYS = (
    "reconfiguration_data",
    "reconfiguration_action",
    "reconfiguration_context",
)

# Reconfiguration flows: entry step and the steps the flow walks through.
RECONFIGURATION_ACTIONS: Dict[str, Dict[str, Any]] = {
    "add": {
        "title": "Add Profiles",
        "entry": "profiles",
        "steps": ["profiles", "configure", "review", "install"],
    },
    "modify": {
        "title": "Modify Configuration",
        "entry": "configure",
        "steps": ["configure", "review", "install"],
    },
    "remove": {
        "title": "Remove Profiles",
        "entry": "profiles",
        "steps": ["profiles", "configure", "review", "install"],
    },
}

OPERATION_HISTORY_LIMIT = 50


def get_phase_name(phase: str) -> str:
    """Get display name for an installation phase."""
    return PHASE_NAMES.get(phase, phase)
