"""Personalization module for ShopPersona.

This module contains the browsing tracker, the relevance scorer and the
recommendation selector, together with the key-value storage layer they
share and the supplementary catalog, section and related-product helpers.
"""
