"""
Spiders of the iherb_scraper project.
"""
