"""Website form submission endpoints with email notifications"""

__version__ = "1.0.0"
