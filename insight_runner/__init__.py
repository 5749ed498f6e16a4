"""
Insight Runner
Nightly and on-demand AI insight generation across tenant organizations
"""

__version__ = "1.0.0"
