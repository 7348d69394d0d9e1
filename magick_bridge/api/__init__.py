"""
HTTP transform service for magick-bridge
"""
