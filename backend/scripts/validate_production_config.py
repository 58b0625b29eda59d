from __future__ import annotations

import os
import sys
from pathlib import Path


def main() -> int:
    os.environ.setdefault("APP_ENV", "production")
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))
    from pydantic import ValidationError

    from app.core.config import Settings

    try:
        settings = Settings()
    except ValidationError as exc:
        print(str(exc))
        return 1
    print(f"CONFIG VALID processors={','.join(settings.processor_names)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
