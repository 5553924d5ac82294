"""
Request schemas
"""
