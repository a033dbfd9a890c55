#!/usr/bin/env python3
"""
RDProbe - Entry point for `python -m rdprobe`
Copyright (C) 2026  Dorin Badea
GPLv3 License
"""

from rdprobe.cli import main

if __name__ == "__main__":
    main()
