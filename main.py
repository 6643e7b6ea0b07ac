"""Entry point de desarrollo sin instalar el paquete.

`python main.py livedetect a.png b.png --host ... --clientid ... --key ...`

El código vive en `src/` (layout "src"): sin `pip install -e .` Python no
encuentra `cli`, `core` ni `adapters`, así que se añade `src` al path.
El mismo path hace que los `.proto` se resuelvan como `adapters/protos/...`.
"""

from __future__ import annotations

import sys
from pathlib import Path


def main() -> None:
    src = Path(__file__).resolve().parent / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))

    from cli.main import run  # noqa: PLC0415

    run()


if __name__ == "__main__":
    main()
