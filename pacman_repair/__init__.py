#!/usr/bin/env python3

"""
Pacman Repair

Repairs the Pacman package database and GnuPG keyring after corruption,
interrupted mirror syncs or keyring desynchronization.
"""

__version__ = "1.0.0"
__author__ = "Pacman Repair Project"
