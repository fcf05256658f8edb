"""Writing files that hold credentials.

Usage:
    from email_assistant.core.files import write_private_text

    write_private_text(token_path, json.dumps(tokens))
"""

import os
from pathlib import Path

OWNER_READ_WRITE = 0o600


def write_private_text(path: Path, text: str) -> None:
    """Write text to a file that is never readable by group or others.

    The file is created with mode 0600; an existing file is narrowed to 0600
    before any new content is written.

    Raises:
        OSError: If the file cannot be created or written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, OWNER_READ_WRITE)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        os.fchmod(f.fileno(), OWNER_READ_WRITE)
        f.write(text)
