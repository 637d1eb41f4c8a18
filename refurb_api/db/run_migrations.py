"""
Programmatic Alembic migration runner.

Runs migrations without an alembic.ini by pointing the script location at
this package's migrations directory.

Usage examples:
    python -m refurb_api.db.run_migrations upgrade head
    python -m refurb_api.db.run_migrations downgrade -1
    python -m refurb_api.db.run_migrations current
"""

import sys
from pathlib import Path
from typing import Callable, Dict, List

from alembic import command
from alembic.config import Config

from refurb_api.db.config import get_settings

_DEFAULT_ARGS: Dict[str, List[str]] = {"upgrade": ["head"], "downgrade": ["-1"]}

_COMMANDS: Dict[str, Callable] = {
    "upgrade": command.upgrade,
    "downgrade": command.downgrade,
    "history": command.history,
    "current": command.current,
    "heads": command.heads,
    "revision": command.revision,
}


def build_config() -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(Path(__file__).resolve().parent / "migrations"))
    # Offline mode reads this; env.py builds its own async engine online.
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> None:
    """Run an Alembic command, e.g. `main(["upgrade", "head"])`."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("No Alembic arguments provided. Example: upgrade head")
        sys.exit(1)

    cmd, other = args[0], args[1:]
    if cmd == "show":
        if not other:
            print("Usage: show <revision>")
            sys.exit(2)
        command.show(build_config(), other[0])
        return
    if cmd not in _COMMANDS:
        print(f"Unsupported Alembic command: {cmd}")
        sys.exit(2)
    _COMMANDS[cmd](build_config(), *(other or _DEFAULT_ARGS.get(cmd, [])))


if __name__ == "__main__":
    main()
