"""
Listing lifecycle, plan catalogue and fallback data
"""
