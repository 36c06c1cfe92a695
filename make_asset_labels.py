#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Print Homebox asset labels onto label sheets.
"""

# local repo modules
import asset_label_sheets.cli


if __name__ == "__main__":
	raise SystemExit(asset_label_sheets.cli.main())
