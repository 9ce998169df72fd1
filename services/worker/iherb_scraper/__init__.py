"""
Scraper for iHerb product listings and detail pages.
"""
