"""
treesync - compare two directory trees and copy missing files across.
"""

APP_NAME = "treesync"
APP_VERSION = "1.0.0"

__version__ = APP_VERSION
