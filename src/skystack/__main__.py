"""
Allow running skystack as a module: python -m skystack
"""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
