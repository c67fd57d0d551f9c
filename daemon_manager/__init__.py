"""
Observe and control a curated set of systemd units.
"""
