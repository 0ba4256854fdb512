#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
optaint/__main__.py
===================

``python -m optaint`` entry point; see :mod:`optaint.main` for commands.
"""

import sys

from optaint.main import main

if __name__ == "__main__":
    sys.exit(main())
