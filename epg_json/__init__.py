"""
epg-json: XMLTV EPG feeds converted to per-channel JSON files.
"""

__version__ = "0.1.0"
