"""Script de ejecución de `bws`.

Permite `python -m main healthcheck --host ...` desde `src/` durante desarrollo,
además del script `bws` instalado por pip.
"""

from __future__ import annotations

import sys

# Windows consoles default to cp1252; server messages may carry any unicode.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
