"""
Module entrypoint.

Allows running the converter with `python -m pdf2cbz`.
"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
