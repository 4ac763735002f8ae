"""Package entry point for ``python -m localekit``.

WHY: Users run the translator as ``python -m localekit en.json
--languages de_de`` for CLI mode, or ``python -m localekit --serve`` for
the HTTP API.

HOW: Checks sys.argv for the ``--serve`` flag. If present, starts the
FastAPI app with uvicorn. Otherwise, delegates to the CLI's main().

RULES:
- ``--serve`` starts the API on LOCALEKIT_HOST:LOCALEKIT_PORT
  (default 127.0.0.1:8000)
- Without ``--serve``, falls through to the CLI
"""

import os
import sys

if __name__ == "__main__":
    if "--serve" in sys.argv:
        import uvicorn

        uvicorn.run(
            "localekit.server.app:app",
            host=os.getenv("LOCALEKIT_HOST", "127.0.0.1"),
            port=int(os.getenv("LOCALEKIT_PORT", "8000")),
        )
    else:
        from localekit.cli import main
        main()
