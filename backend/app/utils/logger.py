"""
Log helper — writes each line to the console and to a per-channel file in LOG_DIR.
"""
import os
from datetime import datetime

from app.config import get_settings


def log_event(channel: str, message: str):
    """Append a timestamped line to <LOG_DIR>/<channel>.log and echo it."""
    ts = datetime.now().isoformat()
    line = f"{ts} - {channel.upper()}: {message}"
    print(line)
    try:
        log_dir = get_settings().LOG_DIR
        os.makedirs(log_dir, exist_ok=True)
        with open(os.path.join(log_dir, f"{channel}.log"), "a") as f:
            f.write(line + "\n")
    except OSError:
        pass
