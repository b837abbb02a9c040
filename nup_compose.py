#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Compose pages from one or more PDFs onto N-up A4 print sheets.
"""

import sys

import nup_sheet_composer.cli


if __name__ == "__main__":
	sys.exit(nup_sheet_composer.cli.main())
