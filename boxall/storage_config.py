"""Shared configuration for storage boxes.

This module centralizes storage-related constants used by every service in
the package.  Values that depend on the deployment (data directory, backing
store, defaults offered for new records) are read from the environment so
that a ``.env`` file loaded by the entry script is picked up automatically.
"""

from __future__ import annotations

import os

# Locations ------------------------------------------------------------------

# Root of the working data (registry, box records and the import ledger).
DATA_DIR = os.getenv("BOXALL_DATA_DIR", "boxall_data")

# Exports and per-box backups survive independently of the working data.
EXPORT_DIR = os.getenv("BOXALL_EXPORT_DIR") or os.path.join(DATA_DIR, "exports")

# ``json`` keeps one file per record, ``sql`` stores records in a database.
STORE_BACKEND = os.getenv("BOXALL_STORE", "json").strip().lower()
DATABASE_URL = os.getenv(
    "BOXALL_DATABASE_URL", f"sqlite:///{os.path.join(DATA_DIR, 'boxall.db')}"
)

# Record keys ----------------------------------------------------------------

REGISTRY_KEY = "boxes.json"
BOX_RECORD_DIR = "boxes"
IMPORT_LOG_KEY = "import_log.json"
STATUS_EXPORT_FILE = "boxall_status.json"
SCHEMA_VERSION = "1.0"
APP_VERSION = "1.0.0"

# Box identifiers ------------------------------------------------------------

BOX_ID_PREFIX = "box_"
# Upper seven bits of the 16-bit identifier select the box type, the lower
# nine bits hold the per-type counter.
TYPE_MASK = 0xFE00
COUNTER_MASK = 0x01FF
MAX_BOXES_PER_TYPE = 511

# Layout geometry ------------------------------------------------------------

UNIFORM_ROWS = 12
UNIFORM_COLUMNS = 12
UNIFORM_CAPACITY = UNIFORM_ROWS * UNIFORM_COLUMNS

# Mixed boxes have ten physical rows: six of small compartments and four of
# double-width ones.
MIXED_ROWS = 10
MIXED_COLUMNS = 12
MIXED_SMALL_COLUMNS = 12
MIXED_LARGE_COLUMNS = 6
MIXED_CAPACITY = 6 * MIXED_SMALL_COLUMNS + 4 * MIXED_LARGE_COLUMNS

# Defaults for new records ---------------------------------------------------

DEFAULT_BOX_TYPE = os.getenv("BOXALL_DEFAULT_BOX_TYPE", "BOXALL144AS")
DEFAULT_BOX_COLOR = os.getenv("BOXALL_DEFAULT_COLOR", "#4A9EFF")
DEFAULT_MIN_STOCK = int(os.getenv("BOXALL_DEFAULT_MIN_STOCK", "10"))
DEFAULT_CATEGORY = os.getenv("BOXALL_DEFAULT_CATEGORY", "Other")
STRICT_BOX_TYPES = os.getenv("BOXALL_STRICT_BOX_TYPES", "0").lower() in {
    "1",
    "true",
    "yes",
}

# Categories offered by the status export even when no item uses them yet.
MASTER_CATEGORIES = [
    "Resistor",
    "Capacitor",
    "Inductor",
    "Diode",
    "LED",
    "Transistor",
    "MOSFET",
    "IC",
    "Microcontroller",
    "Crystal",
    "Connector",
    "Switch",
    "Button",
    "Relay",
    "Fuse",
    "Voltage Regulator",
    "Op-Amp",
    "Sensor",
    "Display",
    "Other",
]
