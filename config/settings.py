import os

# Project root directory (signalboard/)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Folder tree holding the signal JSON files
DATA_DIR = os.getenv("SIGNALBOARD_DATA_DIR", os.path.join(BASE_DIR, "data", "signals"))

# Only files with this extension are listed and loaded
DATA_FILE_EXTENSION = ".json"

# Reserved directory name whose files make up the "All Data" view
MASTER_DIRECTORY = os.getenv("SIGNALBOARD_MASTER_DIRECTORY", "master")

# Shared store for picks, chat and suggestions ("sqlite" or "memory")
STORE_BACKEND = os.getenv("SIGNALBOARD_STORE_BACKEND", "sqlite").lower()
STORE_PATH = os.getenv("SIGNALBOARD_STORE_PATH", os.path.join(BASE_DIR, "data", "signalboard.db"))

# Display name and other per-install preferences
PREFERENCES_PATH = os.getenv("SIGNALBOARD_PREFERENCES_PATH", os.path.join(BASE_DIR, "data", "preferences.json"))

LOGS_DIR = os.path.join(BASE_DIR, "logs")

HOST = os.getenv("SIGNALBOARD_HOST", "127.0.0.1")
PORT = int(os.getenv("SIGNALBOARD_PORT", "5000"))

PAGE_SIZE = 20
CHAT_HISTORY_LIMIT = 100

# Ensure required local directories exist
os.makedirs(DATA_DIR, exist_ok=True)
os.makedirs(os.path.dirname(STORE_PATH), exist_ok=True)
