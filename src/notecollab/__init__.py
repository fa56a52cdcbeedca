"""
NoteCollab Backend - collaborative notes with invitations, share links and presence.
"""

__version__ = "0.1.0"
