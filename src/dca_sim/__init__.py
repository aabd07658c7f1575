"""
Weekly DCA Backtester (dca-sim)

Backtests a recurring weekly dollar-cost-averaging strategy against
historical weekly adjusted prices for one or more securities, and merges
the per-security results into a portfolio-level view.

Historical simulation only. No real-time pricing and no order execution.
"""

__version__ = "0.1.0"
__author__ = "dca-sim contributors"
