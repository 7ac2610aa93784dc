"""
Service layer
"""
