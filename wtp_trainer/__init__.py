"""
WTP Operator Trainer - simulated water treatment plant with guided tutorials
"""

__version__ = '1.0.0'
