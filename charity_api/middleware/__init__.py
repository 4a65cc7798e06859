# SPDX-License-Identifier: Apache-2.0

"""
Flask middleware: authentication, request validation and error handling.
"""
