import json
from pathlib import Path
from typing import Any, Optional

def load_config(config_path: Optional[str], debug: bool = False) -> dict[str, Any]:
    """
    Load a JSON configuration file safely.

    Args:
        config_path (str): Path to the JSON configuration file.
        debug (bool): If True, print debug messages to the terminal.

    Returns:
        Dict[str, Any]: Parsed configuration as a dictionary.
                        Returns an empty dict if file does not exist or is invalid.
    """
    if config_path is None:
        if debug:
            print("[DEBUG] Config file is `None`")
        return {}

    path = Path(config_path)

    if not path.is_file():
        if debug:
            print(f"[DEBUG] Config file not found: {config_path}")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        if debug:
            print(f"[DEBUG] JSON decode error in {config_path}: {e}")
        return {}
    except OSError as e:
        if debug:
            print(f"[DEBUG] OS error reading {config_path}: {e}")
        return {}

    if not isinstance(config, dict):
        if debug:
            print(f"[DEBUG] Config root is not an object in {config_path}")
        return {}

    if debug:
        print(f"[DEBUG] Loaded config from: {config_path}")
    return config
