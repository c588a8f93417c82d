"""
LaunchCurve: two-segment bonding-curve markets for launching a new asset.
"""

__version__ = "0.1.0"
