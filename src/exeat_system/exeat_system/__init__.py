"""Exeat System package.

This package is organized by feature modules (users, requests, settings, audit, ...)
with a thin Flask controller layer over service/repository layers.
"""
