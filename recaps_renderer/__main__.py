"""Package entry point for ``python -m recaps_renderer``.

WHY: Users run the renderer as ``python -m recaps_renderer render ...``
or ``python -m recaps_renderer captions ...``. Python's ``-m`` flag looks
for ``__main__.py`` inside the package and executes it.

HOW: Checks sys.argv for the ``--serve`` flag. If present, starts the
HTTP API. Otherwise, delegates to the CLI's main() function.
"""

import sys

if __name__ == "__main__":
    if "--serve" in sys.argv:
        from recaps_renderer.server.app import run_api
        run_api()
    else:
        from recaps_renderer.cli import main
        main()
