"""
Conveyancing transaction tracker: real-time updates shared between the
buyer, estate agent and both conveyancers.
"""

__version__ = "0.1.0"
