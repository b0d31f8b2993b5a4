"""
Services: generic read/write services for catalogued entities.
"""
