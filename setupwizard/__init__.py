"""
Setup Wizard

Step progression, validation gates, and checkpoint/version recovery for a
guided installation wizard.
"""

__version__ = "1.0.0"
