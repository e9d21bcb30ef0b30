"""Navstage - navigation menu tree editing for a multilingual CMS."""
