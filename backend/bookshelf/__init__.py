"""Bookshelf - personal book collection API."""
