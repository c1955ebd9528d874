"""Services for the marketplace booking core.

Import concrete services from their modules; this package does not
re-export them, since configuration loading imports the SSM service.
"""
