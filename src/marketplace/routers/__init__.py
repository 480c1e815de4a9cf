"""
API routers, one per marketplace domain
"""
