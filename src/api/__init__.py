"""FastAPI application module for ShopPersona.

This module contains the FastAPI application, route handlers, and API
endpoints for the personalization service. It provides RESTful interfaces
for recording shopper activity and serving personalized recommendations.
"""
