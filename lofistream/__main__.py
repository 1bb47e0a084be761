"""
lofistream package __main__ entry point.

Allows running with: python -m lofistream
"""

from lofistream.app.radio import main

if __name__ == "__main__":
    main()
