import os
from types import MappingProxyType

from dotenv import load_dotenv

from zotvid import __version__

# Load environment from .env if present (local dev)
load_dotenv()


def _getenv(name: str, default: str = "") -> str:
    val = os.getenv(name, default)
    return val.strip() if isinstance(val, str) else val


# Zotero (target) configuration - loaded from .env file
ZOTERO = {
    "API_KEY": _getenv("ZOTERO_API_KEY", ""),
    "USER": _getenv("ZOTERO_USER", ""),
    "BASE_URL": _getenv("ZOTERO_BASE_URL", "https://api.zotero.org"),
}

# ESOVDB (source) configuration; BASE_URL points at the airtable-api-proxy
ESOVDB = {
    "BASE_URL": _getenv("ESOVDB_PROXY_URL", ""),
    "VIDEOS_TABLE": _getenv("ESOVDB_VIDEOS_TABLE", "videos"),
    "SERIES_TABLE": _getenv("ESOVDB_SERIES_TABLE", "series"),
}

USER_AGENT = f"zotvid/{__version__}"

DEFAULTS = {
    "PAGE_SIZE": 100,
    "MAX_PAGE_SIZE": 100,
    "CHUNK_SIZE": 50,
    "MAX_CHUNK_SIZE": 50,
    "WAIT_SECS": 10,
    "DUMP_PATH": _getenv("ZOTVID_DUMP_PATH", "videos.json"),
    "FAILED_PATH": _getenv("ZOTVID_FAILED_PATH", "failed.json"),
    "TIMEOUT": 60,
}

ITEM_TYPE = "videoRecording"
ARCHIVE = "Earth Science Online Video Database"
ARCHIVE_LOCATION_PREFIX = "https://airtable.com/tbl3WP689vHdmg7P2/viwD9Tpr6JAAr97CW/"

# Parent collection under which one sub-collection per ESOVDB series is created
SERIES_PARENT_COLLECTION = _getenv("ZOTERO_SERIES_COLLECTION", "HYQEFRGR")

# ESOVDB topic -> Zotero collection key
TOPIC_COLLECTIONS = MappingProxyType({
    "Mass Extinctions & Meteor Impacts": "EGB8TQZ8",
    "Volcanoes, Geysers & Hydrothermal Activity": "KFSTVHZV",
    "Earthquakes & Seismology": "4CQUG4XF",
    "Plate Tectonics": "MJ8S3S2J",
    "Geology & Geomorphology": "ABWDGAGP",
    "Paleontology & Evolution": "JHTAYHVY",
    "Glaciers & Ice Ages": "7CFN6S6W",
    "Oceans & Hydrology": "3UEJDG7B",
    "Climate & Atmosphere": "XJ3XJ2S8",
    "Astronomy & Planetary Science": "QKTZ3HKD",
    "Mineralogy & Petrology": "99IHNQBX",
    "Geophysics & Geodesy": "62CBXVN5",
    "Soils & Sedimentology": "P7MYQ8UE",
    "Geologic Hazards & Engineering": "5ADQEN9X",
    "History of Earth Science": "SZ9BVBWC",
    "Economic Geology & Mining": "M4EJHE4U",
    "Methods & Instrumentation": "RB2CKGNV",
    "Biogeochemistry & Astrobiology": "EHC64Y6U",
    "Archaeology & Anthropology": "FG5AX4KD",
    "Other": "QUAU57KR",
})

# Source table slug -> display name used in progress messages
TABLE_NAMES = MappingProxyType({
    "videos": "Videos",
    "series": "Series",
    "topics": "Topics",
    "tags": "Tags",
    "organizations": "Organizations",
    "people": "People",
})

# Source field names written back during reconciliation
FIELDS = MappingProxyType({
    "ZOTERO_KEY": "Zotero Key",
    "ZOTERO_VERSION": "Zotero Version",
})
