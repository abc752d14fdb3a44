"""
Data-access adapters for the repository service.
"""
