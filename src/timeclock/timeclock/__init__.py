"""Timeclock package.

Organized by feature modules (sessions, corrections, reports, ...) with a thin
Flask controller layer over service/repository layers.
"""
