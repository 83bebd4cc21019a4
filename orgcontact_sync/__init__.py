"""
orgcontact_sync - Organization directory to personal contacts synchronization

Keeps every target user's contact list in step with the organization
directory through the Microsoft Graph API.
"""

__version__ = "0.1.0"
