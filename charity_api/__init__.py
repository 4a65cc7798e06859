# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Charity coordination API - sponsorship core for donors, orphans and orphanages.
"""

__version__ = "1.0.0"
