"""
ContractGov - contract management dashboard for government
elevator and accessibility-platform installation contracts.
"""

__version__ = '1.0.0'
