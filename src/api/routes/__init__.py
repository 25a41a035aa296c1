"""Route modules for the ShopPersona API."""
