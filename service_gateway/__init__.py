"""
API Gateway service for the Unified ERP backend.
"""
