"""Event model, detector geometry and histogram containers"""
