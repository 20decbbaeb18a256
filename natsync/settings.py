# settings.py
import os
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG") #priority levels: DEBUG < INFO < WARNING < ERROR < CRITICAL
ENABLE_CONSOLE_LOG = os.getenv("ENABLE_CONSOLE_LOG", "true").lower() == "true"
ENABLE_FILE_LOG = os.getenv("ENABLE_FILE_LOG", "false").lower() == "true"

# Used by connect() when no timeout is given
DEFAULT_SOCKET_TIMEOUT = float(os.getenv("NATSYNC_DEFAULT_SOCKET_TIMEOUT", "60"))
DEFAULT_READ_TIMEOUT = float(os.getenv("NATSYNC_READ_TIMEOUT", "0.1"))
DEFAULT_CHUNK_SIZE = int(os.getenv("NATSYNC_CHUNK_SIZE", "1500"))
