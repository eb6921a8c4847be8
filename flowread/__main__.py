"""Package entry point for ``python -m flowread``.

WHY: Users run the reader as ``python -m flowread read <document-id>`` or
start the API with ``python -m flowread serve``. Python's ``-m`` flag looks
for ``__main__.py`` inside the package and executes it.

HOW: Delegates to the CLI's main() function.
"""

from flowread.cli import main

if __name__ == "__main__":
    main()
