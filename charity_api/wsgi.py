# SPDX-License-Identifier: Apache-2.0

"""
WSGI entry point: ``gunicorn charity_api.wsgi:app``.
"""

from .app import create_app

app = create_app()
